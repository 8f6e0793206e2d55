"""
Ties the route-sequencing steps together for the views: fleet snapshot
when no vehicle is selected, and a full route plan for a selected one.
"""
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .bounds import BoundingRegion, compute_bounds
from .directions import DirectionsClient, LegRoutingError
from .passengers import DataFetchError, PassengerDataSource
from .routing import Route, build_route
from .stops import (
    MissingPriorityError,
    Stop,
    StopKind,
    offset_duplicate_stops,
    sequence_stops,
)

logger = logging.getLogger(__name__)

STARTING_POINT = Stop(12.978581, 80.2500201, "Starting Point", StopKind.STARTING_POINT)

CAB_FLEET: Sequence[Stop] = [
    Stop(12.9833, 80.2518, "Cab 1", StopKind.VEHICLE),
    Stop(12.9184, 80.2231, "Cab 2", StopKind.VEHICLE),
    Stop(12.9178, 80.2363, "Cab 3", StopKind.VEHICLE),
    Stop(12.9716, 80.2445, "Cab 4", StopKind.VEHICLE),
]

STATUS_OK = "ok"
STATUS_NO_PASSENGERS = "no_passengers"
STATUS_PASSENGER_DATA_UNAVAILABLE = "passenger_data_unavailable"
STATUS_MISSING_PRIORITY = "missing_priority"
STATUS_ROUTING_UNAVAILABLE = "routing_unavailable"


def _bounds_padding() -> List[int]:
    return list(getattr(settings, "ROUTING_CONFIG", {}).get("bounds_padding", [50, 50]))


def _bounds_payload(bounds: Optional[BoundingRegion]) -> Optional[Dict]:
    if bounds is None:
        return None
    payload = bounds.as_dict()
    payload["leaflet"] = bounds.as_leaflet()
    payload["padding"] = _bounds_padding()
    return payload


def get_fleet_snapshot(show_all: bool = True) -> Dict:
    """
    Markers and viewport when no vehicle is selected: every cab plus the
    starting point, or just the starting point.
    """
    markers = [*CAB_FLEET, STARTING_POINT] if show_all else [STARTING_POINT]
    return {
        "markers": [marker.as_dict() for marker in markers],
        "bounds": _bounds_payload(compute_bounds(markers)),
    }


@dataclass
class RoutePlan:
    vehicle_id: str
    stops: List[Stop]
    route: Optional[Route]
    bounds: Optional[BoundingRegion]
    status: str = STATUS_OK
    notices: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict:
        return {
            "vehicle_id": self.vehicle_id,
            "status": self.status,
            "notices": list(self.notices),
            "markers": [stop.as_dict() for stop in self.stops],
            "route": self.route.as_dict() if self.route is not None else None,
            "bounds": _bounds_payload(self.bounds),
        }


def plan_route(
    vehicle_id: str,
    passenger_source: Optional[PassengerDataSource] = None,
    directions_client: Optional[DirectionsClient] = None,
    starting_point: Stop = STARTING_POINT,
) -> RoutePlan:
    """
    Build markers, route and viewport for one vehicle selection.

    Passenger-data, priority and routing faults are all absorbed here and
    turned into a status plus a notice for the user.
    """
    passenger_source = passenger_source or PassengerDataSource()
    notices: List[str] = []
    status = STATUS_OK

    try:
        passengers = passenger_source.fetch(vehicle_id)
    except DataFetchError as error:
        logger.warning("Passenger data unavailable for vehicle %s: %s", vehicle_id, error)
        passengers = []
        status = STATUS_PASSENGER_DATA_UNAVAILABLE
        notices.append("Passenger data is currently unavailable.")

    passengers = offset_duplicate_stops(passengers)

    try:
        ordered = sequence_stops(passengers)
    except MissingPriorityError as error:
        logger.error("Cannot order passengers for vehicle %s: %s", vehicle_id, error)
        stops = [starting_point, *passengers]
        return RoutePlan(
            vehicle_id=vehicle_id,
            stops=stops,
            route=None,
            bounds=compute_bounds(stops),
            status=STATUS_MISSING_PRIORITY,
            notices=notices + [f"Missing priority for: {', '.join(error.identifiers)}"],
        )

    stops = [starting_point, *ordered]
    bounds = compute_bounds(stops)

    if not ordered:
        if status == STATUS_OK:
            status = STATUS_NO_PASSENGERS
        return RoutePlan(vehicle_id, stops, Route.empty(), bounds, status, notices)

    try:
        route = build_route(starting_point, ordered, directions_client or DirectionsClient())
    except (LegRoutingError, ImproperlyConfigured) as error:
        logger.error("No route available for vehicle %s: %s", vehicle_id, error)
        return RoutePlan(
            vehicle_id=vehicle_id,
            stops=stops,
            route=None,
            bounds=bounds,
            status=STATUS_ROUTING_UNAVAILABLE,
            notices=notices + ["No route available."],
        )

    return RoutePlan(vehicle_id, stops, route, bounds, status, notices)


class RouteSession:
    """
    Holds the plan for the currently selected vehicle.

    Each selection gets a fresh generation token. A plan is only written
    back if its token is still the active one; anything older is dropped.
    """

    def __init__(self, planner=plan_route):
        self._planner = planner
        self._tokens = itertools.count(1)
        self._lock = threading.Lock()
        self.active_token: Optional[int] = None
        self.active_vehicle_id: Optional[str] = None
        self.current: Optional[RoutePlan] = None

    def begin(self, vehicle_id: str) -> int:
        with self._lock:
            token = next(self._tokens)
            self.active_token = token
            self.active_vehicle_id = vehicle_id
        return token

    def commit(self, token: int, plan: RoutePlan) -> bool:
        with self._lock:
            if token != self.active_token:
                logger.info(
                    "Discarding stale plan for vehicle %s (token %d, active %s).",
                    plan.vehicle_id,
                    token,
                    self.active_token,
                )
                return False
            self.current = plan
        return True

    def select_vehicle(self, vehicle_id: str, **planner_kwargs) -> Optional[RoutePlan]:
        token = self.begin(vehicle_id)
        plan = self._planner(vehicle_id, **planner_kwargs)
        if not self.commit(token, plan):
            return None
        return plan

    def clear(self) -> None:
        with self._lock:
            self.active_token = None
            self.active_vehicle_id = None
            self.current = None


ROUTE_SESSIONS: Dict[str, RouteSession] = {}
_SESSIONS_LOCK = threading.Lock()


def get_route_session(client_key: str) -> RouteSession:
    """
    One selection state per client, so two users picking vehicles at the
    same time never supersede each other. State lives in this process only.
    """
    with _SESSIONS_LOCK:
        session = ROUTE_SESSIONS.get(client_key)
        if session is None:
            session = RouteSession()
            ROUTE_SESSIONS[client_key] = session
        return session
