"""Token source interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from tokenprism.core.data.providers.http import HttpClient
from tokenprism.core.models import SourceRecord


class TokenSource(ABC):
    """An upstream provider producing ``SourceRecord`` lists.

    Implementations raise ``ProviderError`` on failure; callers decide how
    to degrade.
    """

    name: str

    def __init__(self, client: HttpClient) -> None:
        self.client = client

    @abstractmethod
    async def fetch_candidates(self) -> list[SourceRecord]:
        """Return the source's current trending/popular tokens."""

    @abstractmethod
    async def fetch_by_address(self, address: str) -> SourceRecord | None:
        """Return the record for one address, or ``None`` when unknown."""

    @abstractmethod
    async def search(self, query: str) -> list[SourceRecord]:
        """Free text search."""

    async def close(self) -> None:
        await self.client.close()


def to_float(value: object, default: float = 0.0) -> float:
    """Parse upstream numbers that may arrive as strings or nulls."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def to_optional_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
