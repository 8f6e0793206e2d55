from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .directions import DirectionsClient, LegRoutingError
from .stops import Stop

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteLeg:
    origin: Stop
    destination: Stop
    geometry: Optional[Tuple[Tuple[float, float], ...]]
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None


@dataclass(frozen=True)
class Route:
    legs: Tuple[RouteLeg, ...]
    points: Tuple[Tuple[float, float], ...]
    distance_km: Optional[float]

    @classmethod
    def empty(cls) -> "Route":
        return cls(legs=(), points=(), distance_km=0.0)

    def as_dict(self) -> dict:
        return {
            "points": [[lat, lng] for lat, lng in self.points],
            "distance_km": self.distance_km,
            "legs": [
                {
                    "from": leg.origin.identifier,
                    "to": leg.destination.identifier,
                    "point_count": len(leg.geometry or ()),
                    "distance_m": leg.distance_m,
                    "duration_s": leg.duration_s,
                }
                for leg in self.legs
            ],
        }


def route_legs(stops: Sequence[Stop], client: DirectionsClient) -> List[RouteLeg]:
    """
    Fetch one leg per consecutive pair of stops, strictly in order.

    The first failure aborts the walk; later legs are never requested.
    """
    legs: List[RouteLeg] = []
    for index, (origin, destination) in enumerate(zip(stops[:-1], stops[1:])):
        try:
            fetched = client.fetch_leg(origin, destination)
        except LegRoutingError as error:
            error.leg_index = index
            logger.error(
                "Leg %d (%s -> %s) failed, abandoning route: %s",
                index,
                origin.identifier,
                destination.identifier,
                error,
            )
            raise

        legs.append(
            RouteLeg(
                origin=origin,
                destination=destination,
                geometry=fetched.points,
                distance_m=fetched.distance_m,
                duration_s=fetched.duration_s,
            )
        )
    return legs


def aggregate_route(legs: Sequence[RouteLeg]) -> Route:
    """
    Stitch leg geometries into one polyline. Points where two legs meet
    are kept twice.
    """
    points: List[Tuple[float, float]] = []
    distance_m = 0.0
    distance_known = True
    for index, leg in enumerate(legs):
        if leg.geometry is None:
            raise LegRoutingError(
                f"Leg {leg.origin.identifier} -> {leg.destination.identifier} has no geometry",
                leg_index=index,
            )
        points.extend(leg.geometry)
        if leg.distance_m is None:
            distance_known = False
        else:
            distance_m += leg.distance_m

    return Route(
        legs=tuple(legs),
        points=tuple(points),
        distance_km=round(distance_m / 1000, 2) if distance_known else None,
    )


def build_route(start: Stop, stops: Sequence[Stop], client: DirectionsClient) -> Route:
    if not stops:
        return Route.empty()

    legs = route_legs([start, *stops], client)
    route = aggregate_route(legs)
    logger.info(
        "Built route with %d legs and %d points (%s km).",
        len(route.legs),
        len(route.points),
        route.distance_km,
    )
    return route
