"""
Last-known-good quote cache over the local key-value store.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from pydantic import ValidationError

from ..kv_store import KeyValueStore
from ..models import Quote

logger = logging.getLogger(__name__)

CACHE_PREFIX = "stock_cache_"


def cache_key(code: str) -> str:
    return f"{CACHE_PREFIX}{code}"


class QuoteCache:
    def __init__(
        self,
        store: KeyValueStore,
        ttl_days: int = 365,
        now_datetime: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.ttl = timedelta(days=ttl_days)
        self._now = now_datetime or datetime.now

    def save(self, code: str, quote: Quote) -> Quote:
        stamped = quote.model_copy(update={"cache_timestamp": self._now()})
        self.store.set(cache_key(code), stamped.to_json())
        self.purge_expired()
        return stamped

    def load(self, code: str) -> Quote | None:
        key = cache_key(code)
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return Quote.from_json(raw)
        except ValidationError as exc:
            logger.warning(f"Dropping corrupt cache entry {key}: {exc.error_count()} validation errors")
            self.store.remove(key)
            return None

    def purge_expired(self) -> int:
        """
        Remove entries older than the TTL or that no longer parse.

        Returns:
            Number of entries removed
        """
        cutoff = self._now() - self.ttl
        removed = 0
        for key in self.store.keys():
            if not key.startswith(CACHE_PREFIX):
                continue
            raw = self.store.get(key)
            if raw is None:
                continue
            try:
                quote = Quote.from_json(raw)
            except ValidationError:
                self.store.remove(key)
                removed += 1
                continue
            stamp = quote.cache_timestamp
            if stamp is None:
                continue
            if stamp.tzinfo is not None:
                stamp = stamp.astimezone().replace(tzinfo=None)
            if stamp < cutoff:
                self.store.remove(key)
                removed += 1
        if removed:
            logger.info(f"Purged {removed} cached quotes")
        return removed

    def cached_codes(self) -> list[str]:
        return [key[len(CACHE_PREFIX):] for key in self.store.keys() if key.startswith(CACHE_PREFIX)]
