"""Accumulated transaction pages for one address on one network.

The store owns the only mutable state of the ingestion path. Pages are
appended in fetch order and never re-sorted; the next offset is simply the
number of results accumulated so far. That offset math assumes the upstream
pages never overlap, so duplicates are *not* removed on merge. Rendering code
removes them with :func:`dedupe_by_id` instead.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from .errors import LoadInProgressError
from .fetcher import DEFAULT_PAGE_SIZE, PageFetcher
from .filtering import FilterSortEngine
from .logging_setup import get_logger
from .models import FilterCriteria, Page, Transaction
from .network import NetworkContext, validate_address

_logger = get_logger("stacks_history.store")


class TransactionStore:
    """Append-only accumulation of fetched pages.

    Parameters
    ----------
    fetcher:
        The :class:`~stacks_history.fetcher.PageFetcher` used for every load.
    address:
        The account whose history is accumulated. Validated for ``network``
        up front so a bad address never reaches the network.
    network:
        The :class:`~stacks_history.network.NetworkContext` for all loads.
    page_size:
        ``limit`` requested per page.

    Concurrency
    -----------
    At most one :meth:`load_more` runs at a time per store. A second call made
    while one is in flight raises :class:`LoadInProgressError` rather than
    waiting, so the same offset is never fetched and appended twice.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        address: str,
        network: NetworkContext,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._fetcher = fetcher
        self._address = validate_address(address, network)
        self._network = network
        self._page_size = page_size
        self._lock = threading.Lock()
        self._results: list[Transaction] = []
        self._offset = 0
        self._limit = page_size
        self._total: int | None = None

    # ---- Read-only view -------------------------------------------------

    @property
    def address(self) -> str:
        return self._address

    @property
    def network(self) -> NetworkContext:
        return self._network

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def total(self) -> int | None:
        """Freshest upstream total, or ``None`` before the first load."""

        return self._total

    @property
    def next_offset(self) -> int:
        return len(self._results)

    @property
    def has_more(self) -> bool:
        return self._total is None or self._total > len(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def snapshot(self) -> tuple[Transaction, ...]:
        """Return the accumulated results in fetch order (immutable copy)."""

        return tuple(self._results)

    # ---- Mutation -------------------------------------------------------

    def load_more(self) -> Page | None:
        """Fetch the next page and append it.

        Returns the fetched :class:`Page`, or ``None`` when the store already
        holds ``total`` results (no request is made). Errors from the fetcher
        propagate unchanged and leave the store untouched.
        """

        if not self._lock.acquire(blocking=False):
            raise LoadInProgressError(f"a load is already in progress for {self._address}")
        try:
            if not self.has_more:
                return None
            next_offset = len(self._results)
            page = self._fetcher.fetch(
                self._address, self._network, offset=next_offset, limit=self._page_size
            )
            self._results.extend(page.results)
            # Only the newest page's bookkeeping is kept; older totals are stale.
            self._offset = page.offset
            self._limit = page.limit
            self._total = page.total
            _logger.debug(
                "store:appended address=%s offset=%d added=%d accumulated=%d total=%d",
                self._address,
                next_offset,
                len(page.results),
                len(self._results),
                page.total,
            )
            if not page.results and page.total > len(self._results):
                # Upstream claims more but returned nothing; stop paging.
                _logger.warning(
                    "store:empty_page address=%s offset=%d total=%d",
                    self._address,
                    next_offset,
                    page.total,
                )
                self._total = len(self._results)
            return page
        finally:
            self._lock.release()

    def reset(self) -> None:
        with self._lock:
            self._results.clear()
            self._offset = 0
            self._limit = self._page_size
            self._total = None


def dedupe_by_id(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Drop repeated transaction ids, keeping the first occurrence."""

    seen: set[str] = set()
    out: list[Transaction] = []
    for tx in transactions:
        if tx.tx_id in seen:
            continue
        seen.add(tx.tx_id)
        out.append(tx)
    return out


def render_view(
    store: TransactionStore,
    criteria: FilterCriteria,
    *,
    engine: FilterSortEngine | None = None,
) -> list[Transaction]:
    """Snapshot the store, de-duplicate, then filter and sort."""

    snapshot = dedupe_by_id(store.snapshot())
    if engine is None:
        engine = FilterSortEngine()
    return engine.apply(snapshot, criteria)


__all__ = ["TransactionStore", "dedupe_by_id", "render_view"]
