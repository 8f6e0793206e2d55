from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from shapely.geometry import MultiPoint

from .stops import Stop


@dataclass(frozen=True)
class BoundingRegion:
    south_west_lat: float
    south_west_lng: float
    north_east_lat: float
    north_east_lng: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "south_west": {"lat": self.south_west_lat, "lng": self.south_west_lng},
            "north_east": {"lat": self.north_east_lat, "lng": self.north_east_lng},
        }

    def as_leaflet(self) -> List[List[float]]:
        return [
            [self.south_west_lat, self.south_west_lng],
            [self.north_east_lat, self.north_east_lng],
        ]


def compute_bounds(stops: Sequence[Stop]) -> Optional[BoundingRegion]:
    """
    Smallest lat/lng box holding every displayed stop. A single stop gives
    a zero-area box on that stop.
    """
    if not stops:
        return None

    # shapely works in x/y, so longitude goes first.
    min_lng, min_lat, max_lng, max_lat = MultiPoint(
        [(stop.longitude, stop.latitude) for stop in stops]
    ).bounds
    return BoundingRegion(
        south_west_lat=min_lat,
        south_west_lng=min_lng,
        north_east_lat=max_lat,
        north_east_lng=max_lng,
    )
