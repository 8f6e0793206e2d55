"""
Stop records plus the two pure steps that run before any routing happens:
nudging passengers that share a pick-up point apart, and putting them in
visiting order.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_OFFSET_DEGREES = 0.0001  # roughly 11 m at the equator


class StopKind(str, Enum):
    VEHICLE = "vehicle"
    STARTING_POINT = "starting_point"
    PASSENGER = "passenger"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"

    @classmethod
    def parse(cls, value) -> Optional["Gender"]:
        if value is None:
            return None
        try:
            return cls(str(value).strip().capitalize())
        except ValueError:
            logger.warning("Unknown gender tag %r, leaving it unset.", value)
            return None


class MissingPriorityError(Exception):
    """Raised when a passenger stop cannot be placed in visiting order."""

    def __init__(self, identifiers: Sequence[str]):
        self.identifiers = list(identifiers)
        super().__init__(
            "Passenger stops without a priority: " + ", ".join(self.identifiers)
        )


@dataclass(frozen=True)
class Stop:
    latitude: float
    longitude: float
    identifier: str
    kind: StopKind
    priority: Optional[int] = None
    gender: Optional[Gender] = None

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude {self.latitude} out of range for {self.identifier}.")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude {self.longitude} out of range for {self.identifier}.")

    @property
    def position(self) -> Tuple[float, float]:
        return self.latitude, self.longitude

    def moved_to(self, latitude: float, longitude: float) -> "Stop":
        return replace(self, latitude=latitude, longitude=longitude)

    @property
    def icon(self) -> str:
        if self.kind is StopKind.PASSENGER:
            return "female" if self.gender is Gender.FEMALE else "male"
        if self.kind is StopKind.STARTING_POINT:
            return "starting_point"
        return "cab"

    def as_dict(self) -> Dict:
        return {
            "lat": self.latitude,
            "lng": self.longitude,
            "name": self.identifier,
            "type": self.kind.value,
            "gender": self.gender.value if self.gender else None,
            "priority": self.priority,
            "icon": self.icon,
        }


def _offset_radius() -> float:
    config = getattr(settings, "ROUTING_CONFIG", {})
    return float(config.get("duplicate_offset_degrees", DEFAULT_OFFSET_DEGREES))


def _normalise(lat: float, lng: float) -> Tuple[float, float]:
    # Going past a pole comes back down on the far meridian.
    if lat > 90.0:
        lat, lng = 180.0 - lat, lng + 180.0
    elif lat < -90.0:
        lat, lng = -180.0 - lat, lng + 180.0
    if not -180.0 <= lng <= 180.0:
        lng = (lng + 180.0) % 360.0 - 180.0
    return lat, lng


def offset_duplicate_stops(
    stops: Sequence[Stop], radius: Optional[float] = None
) -> List[Stop]:
    """
    Spread stops that share an exact coordinate evenly on a small circle
    around it. Stops with a unique coordinate are returned untouched and the
    overall order of the input is kept.

    Only identical (lat, lng) pairs are grouped; two points a millimetre
    apart still overlap on the map.
    """
    if radius is None:
        radius = _offset_radius()

    groups: Dict[Tuple[float, float], List[int]] = {}
    for index, stop in enumerate(stops):
        groups.setdefault(stop.position, []).append(index)

    adjusted = list(stops)
    for (lat, lng), members in groups.items():
        total = len(members)
        if total == 1:
            continue
        logger.debug("Offsetting %d stops sharing (%s, %s).", total, lat, lng)
        for slot, index in enumerate(members):
            angle = (slot / total) * math.pi * 2
            adjusted[index] = stops[index].moved_to(
                *_normalise(
                    lat + radius * math.cos(angle),
                    lng + radius * math.sin(angle),
                )
            )
    return adjusted


def sequence_stops(stops: Sequence[Stop]) -> List[Stop]:
    """
    Order passenger stops by ascending priority. The sort is stable, so
    passengers with equal priority keep the order they arrived in.
    """
    missing = [stop.identifier for stop in stops if stop.priority is None]
    if missing:
        raise MissingPriorityError(missing)
    return sorted(stops, key=lambda stop: stop.priority)
