from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, Protocol

EARTH_RADIUS_KM: Final[float] = 6371.0


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


class DestinationResolver(Protocol):
    def resolve(self, name: str) -> Coordinate | None: ...


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points (Haversine).

    NaN inputs propagate as NaN; callers validate coordinates beforehand.
    """

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


NEPAL_DESTINATIONS: Final[dict[str, Coordinate]] = {
    "Kathmandu": Coordinate(27.7172, 85.324),
    "Pokhara": Coordinate(28.2096, 83.9856),
    "Chitwan": Coordinate(27.5291, 84.3542),
    "Lumbini": Coordinate(27.4833, 83.2764),
    "Nagarkot": Coordinate(27.7172, 85.5201),
    "Bhaktapur": Coordinate(27.6728, 85.4298),
    "Patan": Coordinate(27.6684, 85.3247),
}


class StaticDestinationResolver:
    """
    Name -> coordinate lookup over a fixed table.

    Exact names win; otherwise the lookup falls back to a case-insensitive
    match. Unknown names resolve to None so scoring can skip the geo signal.
    """

    def __init__(self, table: Mapping[str, Coordinate]) -> None:
        self._table: dict[str, Coordinate] = dict(table)
        self._lowered: dict[str, Coordinate] = {
            name.strip().lower(): coordinate for name, coordinate in self._table.items()
        }

    def resolve(self, name: str) -> Coordinate | None:
        cleaned = str(name or "").strip()
        if not cleaned:
            return None
        exact = self._table.get(cleaned)
        if exact is not None:
            return exact
        return self._lowered.get(cleaned.lower())


DEFAULT_DESTINATION_RESOLVER: Final[StaticDestinationResolver] = StaticDestinationResolver(NEPAL_DESTINATIONS)
