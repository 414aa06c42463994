"""Protocol definitions and error types for storm data sources.

Each protocol defines the interface that concrete data source implementations must satisfy.
"""

from typing import Protocol, runtime_checkable

from stormintel.models.storm import GeoPoint, SourceStatus, StormEvent


class ConfigurationError(RuntimeError):
    """Credentials or settings required by a source are missing or inconsistent."""


class ProviderError(RuntimeError):
    """A provider answered, but with a payload we cannot use."""


@runtime_checkable
class GeocodeSource(Protocol):
    async def geocode(self, street: str, city: str, state: str, zip_code: str) -> GeoPoint | None:
        """Resolve a street address to coordinates, or None if no provider matched."""
        ...


@runtime_checkable
class StormEventSource(Protocol):
    async def search_with_status(
        self, lat: float, lng: float, radius_miles: float, months: int
    ) -> tuple[list[StormEvent], SourceStatus]:
        """Fetch normalized events around a point, never raising provider errors."""
        ...


@runtime_checkable
class DataFileResolver(Protocol):
    async def resolve(self, year: int) -> str | None:
        """Return the download URL of the authoritative data file for a year."""
        ...
