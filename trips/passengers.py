"""
Loads the passengers assigned to a vehicle from the rides service.
"""
from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional

import requests
from django.conf import settings

from .stops import Gender, Stop, StopKind

LOGGER = logging.getLogger(__name__)

DEFAULT_RIDES_URL = "http://localhost:8081"


class DataFetchError(Exception):
    """The rides service was unreachable or answered with an unexpected shape."""


def _parse_priority(value) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise DataFetchError(f"Invalid priority {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise DataFetchError(f"Invalid priority {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as error:
        raise DataFetchError(f"Invalid priority {value!r}") from error


def employee_to_stop(record: Dict) -> Stop:
    if not isinstance(record, dict):
        raise DataFetchError(f"Employee record is not an object: {record!r}")
    try:
        return Stop(
            latitude=float(record["Latitude"]),
            longitude=float(record["Longitude"]),
            identifier=str(record["EmployeeId"]),
            kind=StopKind.PASSENGER,
            priority=_parse_priority(record.get("PriorityOrder")),
            gender=Gender.parse(record.get("EmployeeGender")),
        )
    except (KeyError, TypeError, ValueError) as error:
        raise DataFetchError(f"Malformed employee record {record!r}: {error}") from error


class PassengerDataSource:
    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        config = getattr(settings, "ROUTING_CONFIG", {})
        self.base_url = (base_url or config.get("rides_service_url") or DEFAULT_RIDES_URL).rstrip("/")
        self.timeout = timeout or config.get("timeout_seconds", 10)

    def fetch(self, vehicle_id: str) -> List[Stop]:
        url = f"{self.base_url}/rides/{vehicle_id}"
        LOGGER.info("Fetching passengers for vehicle %s", vehicle_id)

        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.exceptions.RequestException, json.JSONDecodeError) as error:
            raise DataFetchError(f"Error fetching passengers for {vehicle_id}: {error}") from error

        employees = payload.get("employees") if isinstance(payload, dict) else None
        if not isinstance(employees, list):
            raise DataFetchError(
                f"No employee data for vehicle {vehicle_id} or data is not in expected format"
            )

        stops = [employee_to_stop(record) for record in employees]
        LOGGER.info("Loaded %d passengers for vehicle %s", len(stops), vehicle_id)
        return stops
