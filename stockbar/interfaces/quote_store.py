"""Quote store protocol — cache abstraction used by the pipeline."""
from typing import Protocol

from ..models import CacheEntry, Quote


class QuoteStore(Protocol):
    """Abstract interface for a TTL quote cache."""

    def get(self, symbol: str) -> CacheEntry | None: ...

    def get_fresh(self, symbol: str) -> Quote | None: ...

    def put(self, symbol: str, quote: Quote, ttl: int | None = None) -> CacheEntry: ...

    def save(self) -> None: ...
