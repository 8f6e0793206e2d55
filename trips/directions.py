"""
Client for the OpenRouteService directions endpoint.

One call fetches one leg. The service speaks lng,lat; everything handed
back to the rest of the app is (lat, lng).
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .stops import Stop

logger = logging.getLogger(__name__)

DEFAULT_DIRECTIONS_URL = "https://api.openrouteservice.org/v2/directions"


def _as_number(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class LegRoutingError(Exception):
    """A directions request failed or came back without usable geometry."""

    def __init__(self, message: str, leg_index: Optional[int] = None):
        super().__init__(message)
        self.leg_index = leg_index


@dataclass(frozen=True)
class LegGeometry:
    points: Tuple[Tuple[float, float], ...]
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None


class DirectionsClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        profile: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        config = getattr(settings, "ROUTING_CONFIG", {})
        self.api_key = api_key or config.get("api_key")
        self.base_url = (base_url or config.get("directions_url") or DEFAULT_DIRECTIONS_URL).rstrip("/")
        self.profile = profile or config.get("profile", "driving-car")
        self.timeout = timeout or config.get("timeout_seconds", 10)

        if not self.api_key:
            raise ImproperlyConfigured(
                "Directions API key not set. Set ORS_API_KEY in the environment."
            )

    @staticmethod
    def format_coordinate(stop: Stop) -> str:
        return f"{stop.longitude},{stop.latitude}"

    def fetch_leg(self, origin: Stop, destination: Stop) -> LegGeometry:
        url = f"{self.base_url}/{self.profile}"
        params = {
            "api_key": self.api_key,
            "start": self.format_coordinate(origin),
            "end": self.format_coordinate(destination),
            "format": "geojson",
        }

        logger.info(
            "Requesting directions %s -> %s",
            params["start"],
            params["end"],
        )

        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.exceptions.RequestException, json.JSONDecodeError) as error:
            raise LegRoutingError(f"Error contacting directions service: {error}") from error

        return self._parse(payload, origin, destination)

    def _parse(self, payload, origin: Stop, destination: Stop) -> LegGeometry:
        features = payload.get("features") if isinstance(payload, dict) else None
        if not isinstance(features, list) or not features:
            raise LegRoutingError(
                f"No route data between {origin.identifier} and {destination.identifier}"
            )

        feature = features[0]
        geometry = feature.get("geometry") if isinstance(feature, dict) else None
        coordinates = geometry.get("coordinates") if isinstance(geometry, dict) else None
        if not isinstance(coordinates, list) or not coordinates:
            raise LegRoutingError(
                f"Route between {origin.identifier} and {destination.identifier} has no geometry"
            )

        try:
            # Flip [lng, lat] into (lat, lng).
            points: List[Tuple[float, float]] = [
                (float(coord[1]), float(coord[0])) for coord in coordinates
            ]
        except (TypeError, ValueError, IndexError, KeyError) as error:
            raise LegRoutingError(f"Malformed route geometry: {error}") from error

        properties = feature.get("properties")
        summary = properties.get("summary") if isinstance(properties, dict) else None
        if not isinstance(summary, dict):
            summary = {}
        return LegGeometry(
            points=tuple(points),
            distance_m=_as_number(summary.get("distance")),
            duration_s=_as_number(summary.get("duration")),
        )
