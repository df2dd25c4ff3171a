"""Quote provider protocol — one upstream quote API schema."""
from datetime import datetime
from typing import Any, Protocol, Sequence

from ..models import FetchResult


class QuoteProvider(Protocol):
    """Abstract interface for building quote requests and parsing responses."""

    @property
    def name(self) -> str: ...

    @property
    def batch_size(self) -> int: ...

    def build_request(self, symbols: Sequence[str]) -> tuple[str, dict[str, Any]]: ...

    def parse(
        self, body: str, symbols: Sequence[str], fetched_at: datetime
    ) -> dict[str, FetchResult]: ...
