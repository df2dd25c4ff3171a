"""Quote cache — symbol → last good quote, persisted between invocations."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable

from ..config import CacheConfig
from ..models import CacheEntry, Quote

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _entry_to_dict(entry: CacheEntry) -> dict[str, Any]:
    quote = entry.quote
    return {
        "price": str(quote.price),
        "previous_close": str(quote.previous_close),
        "currency": quote.currency,
        "fetched_at": quote.fetched_at.isoformat(),
        "expires_at": entry.expires_at.isoformat(),
    }


def _parse_timestamp(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _entry_from_dict(symbol: str, raw: dict[str, Any]) -> CacheEntry:
    quote = Quote(
        symbol=symbol,
        price=Decimal(raw["price"]),
        previous_close=Decimal(raw["previous_close"]),
        fetched_at=_parse_timestamp(raw["fetched_at"]),
        currency=raw.get("currency", "USD"),
    )
    return CacheEntry(
        symbol=symbol, quote=quote, expires_at=_parse_timestamp(raw["expires_at"])
    )


class QuoteCache:
    """TTL cache of successful quotes.

    :meth:`get` also returns expired entries; callers must check
    ``entry.is_expired(now)`` and only use an expired quote as a stale
    fallback. Entries are replaced, never mutated, and only :meth:`put`
    writes, which the pipeline calls for successful fetches alone.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        ttl_seconds: int = 285,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.path = Path(path).expanduser() if path is not None else None
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._dirty = False

    @classmethod
    def from_config(cls, config: CacheConfig) -> "QuoteCache":
        cache = cls(
            path=config.path if config.enabled else None,
            ttl_seconds=config.ttl_seconds,
        )
        cache.load()
        return cache

    def now(self) -> datetime:
        return self._clock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and symbol.upper() in self._entries

    def get(self, symbol: str) -> CacheEntry | None:
        """Return the entry for ``symbol``, expired or not. ``None`` is a cache miss."""
        return self._entries.get(symbol.upper())

    def get_fresh(self, symbol: str) -> Quote | None:
        """Return the cached quote only while it is within its TTL."""
        entry = self.get(symbol)
        if entry is None or entry.is_expired(self.now()):
            return None
        return entry.quote

    def put(self, symbol: str, quote: Quote, ttl: int | None = None) -> CacheEntry:
        """Store a successfully fetched quote for ``ttl`` seconds from its fetch time."""
        ttl = self.ttl_seconds if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        symbol = symbol.upper()
        entry = CacheEntry(
            symbol=symbol,
            quote=quote,
            expires_at=quote.fetched_at + timedelta(seconds=ttl),
        )
        self._entries[symbol] = entry
        self._dirty = True
        return entry

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Read entries from disk. A missing or corrupt file leaves the cache empty."""
        if self.path is None or not self.path.exists():
            return

        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable quote cache %s: %s", self.path, e)
            return

        if not isinstance(data, dict) or data.get("version") != CACHE_FORMAT_VERSION:
            logger.warning("Ignoring quote cache %s with unknown format", self.path)
            return

        quotes = data.get("quotes")
        if not isinstance(quotes, dict):
            logger.warning("Ignoring quote cache %s without quotes", self.path)
            return

        for symbol, raw in quotes.items():
            try:
                entry = _entry_from_dict(str(symbol).upper(), raw)
            except (KeyError, TypeError, ValueError, InvalidOperation) as e:
                logger.warning("Dropping corrupt cache record for %s: %s", symbol, e)
                continue
            self._entries[entry.symbol] = entry

        logger.debug("Loaded %d cached quote(s) from %s", len(self._entries), self.path)

    def save(self) -> None:
        """Write entries to disk atomically if anything changed.

        Raises:
            OSError: the cache file could not be written.
        """
        if self.path is None or not self._dirty:
            return

        payload = {
            "version": CACHE_FORMAT_VERSION,
            "quotes": {
                symbol: _entry_to_dict(entry)
                for symbol, entry in sorted(self._entries.items())
            },
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=".quotes-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        self._dirty = False
        logger.debug("Saved %d cached quote(s) to %s", len(self._entries), self.path)
