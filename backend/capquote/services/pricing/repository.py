"""Async price table repository with retry and last-known-good fallback."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from ...utils.metrics import incr
from .errors import DataUnavailable
from .models import PriceCatalog, PriceTable
from .sources import TableSource

logger = logging.getLogger(__name__)

# After a failed refresh with a stale snapshot in hand, wait this long
# before hitting the store again.
STALE_RETRY_SECONDS = 30.0


class PriceTableRepository:
    """Loads every table from ``source`` into an immutable :class:`PriceCatalog`.

    The first access loads synchronously from the caller's point of view;
    later accesses reuse the snapshot until ``max_age`` passes. A failed
    reload keeps serving the previous snapshot and only raises
    :class:`DataUnavailable` when nothing was ever loaded.
    """

    def __init__(
        self,
        source: TableSource,
        *,
        timeout: float = 5.0,
        retries: int = 3,
        backoff: float = 0.2,
        max_age: Optional[float] = 900,
        on_change: Optional[Callable[[PriceCatalog], Any]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.timeout = timeout
        self.retries = max(1, retries)
        self.backoff = backoff
        self.max_age = max_age
        self.on_change = on_change
        self._clock = clock
        self._catalog: Optional[PriceCatalog] = None
        self._loaded_at: Optional[float] = None
        self._next_attempt_at: Optional[float] = None
        self._last_error: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def catalog(self) -> Optional[PriceCatalog]:
        return self._catalog

    def _needs_reload(self) -> bool:
        if self._catalog is None:
            return True
        now = self._clock()
        if self._next_attempt_at is not None:
            return now >= self._next_attempt_at
        return self.max_age is not None and now - (self._loaded_at or 0.0) >= self.max_age

    async def snapshot(self) -> PriceCatalog:
        if not self._needs_reload():
            return self._catalog  # type: ignore[return-value]
        async with self._lock:
            # Another waiter may have finished the reload already
            if not self._needs_reload():
                return self._catalog  # type: ignore[return-value]
            return await self._reload()

    async def load(self, table_id: str) -> PriceTable:
        """Return one table by id; raises NotFoundError or DataUnavailable."""
        catalog = await self.snapshot()
        return catalog.get(table_id)

    async def refresh(self) -> PriceCatalog:
        """Force a reload from the backing store."""
        async with self._lock:
            return await self._reload()

    async def _fetch_with_retry(self) -> List[PriceTable]:
        last_exc: Optional[BaseException] = None
        for attempt in range(1, self.retries + 1):
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(self.source.fetch_all), timeout=self.timeout
                )
            except (DataUnavailable, asyncio.TimeoutError) as exc:
                last_exc = exc
                logger.warning(
                    "Price table load failed on attempt %s/%s: %s",
                    attempt,
                    self.retries,
                    exc or type(exc).__name__,
                )
                if attempt < self.retries:
                    await asyncio.sleep(self.backoff * attempt)
        raise DataUnavailable(
            f"Price tables unavailable after {self.retries} attempts", last_exc
        )

    async def _reload(self) -> PriceCatalog:
        previous = self._catalog
        try:
            tables = await self._fetch_with_retry()
        except DataUnavailable as exc:
            incr("pricing.table.refresh.fail")
            self._last_error = str(exc)
            if previous is None:
                raise
            self._next_attempt_at = self._clock() + STALE_RETRY_SECONDS
            logger.warning(
                "Serving stale price tables (version %s): %s", previous.version, exc
            )
            return previous

        catalog = PriceCatalog(tables)
        self._catalog = catalog
        self._loaded_at = self._clock()
        self._next_attempt_at = None
        self._last_error = None
        if previous is None or previous.version != catalog.version:
            logger.info(
                "Price tables loaded: version %s, %d tables", catalog.version, len(catalog)
            )
            if self.on_change is not None:
                self.on_change(catalog)
        return catalog

    def status(self) -> Dict[str, Any]:
        age = None
        if self._loaded_at is not None:
            age = round(self._clock() - self._loaded_at, 1)
        return {
            "version": self._catalog.version if self._catalog else None,
            "tables": len(self._catalog) if self._catalog else 0,
            "ageSeconds": age,
            "stale": self._next_attempt_at is not None,
            "lastError": self._last_error,
        }
