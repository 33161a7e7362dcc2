"""Client-side filtering and sorting of accumulated transactions.

:func:`apply_filters` is a pure function of ``(transactions, criteria)``.
:class:`FilterSortEngine` wraps it with a one-entry memo keyed on the identity
of the input sequence and the (immutable) criteria, purely to avoid redundant
work when a view is re-rendered without changes.

Filter predicate (a transaction passes iff all hold):

- ``kind`` is ``"all"`` or equals ``tx_type``.
- ``status``: ``"all"`` passes everything, ``"success"`` requires
  ``tx_status == "success"``, ``"failed"`` requires anything else.
- ``date_from``/``date_to`` bound ``block_time`` by start/end of the local day
  (end of day is 23:59:59.999).
- Amount bounds (STX) apply to token transfers only; every other kind passes.

Sorting uses Python's stable sort for both directions, so transactions with
equal keys keep their fetch order in ascending *and* descending views.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date, datetime, time, tzinfo
from decimal import Decimal

from .models import FilterCriteria, Transaction, TxKind

_END_OF_DAY = time(23, 59, 59, 999_000)


def _epoch_ms(d: date, at: time, tz: tzinfo | None) -> int:
    dt = datetime.combine(d, at)
    # Naive datetimes are interpreted in the machine's local timezone.
    dt = dt.replace(tzinfo=tz) if tz is not None else dt.astimezone()
    return int(dt.timestamp() * 1000)


def start_of_day_ms(d: date, tz: tzinfo | None = None) -> int:
    return _epoch_ms(d, time.min, tz)


def end_of_day_ms(d: date, tz: tzinfo | None = None) -> int:
    return _epoch_ms(d, _END_OF_DAY, tz)


def _amount_key(tx: Transaction) -> Decimal:
    amount = tx.amount_stx
    return amount if amount is not None else Decimal(0)


_SORT_KEYS: dict[str, Callable[[Transaction], int | Decimal]] = {
    "block_height": lambda tx: tx.block_height,
    "block_time": lambda tx: tx.block_time,
    "amount": _amount_key,
}


def _build_predicate(
    criteria: FilterCriteria, tz: tzinfo | None
) -> Callable[[Transaction], bool]:
    from_ms = start_of_day_ms(criteria.date_from, tz) if criteria.date_from else None
    to_ms = end_of_day_ms(criteria.date_to, tz) if criteria.date_to else None
    min_amount = criteria.min_amount
    max_amount = criteria.max_amount

    def _passes(tx: Transaction) -> bool:
        if criteria.kind != "all" and tx.tx_type != criteria.kind:
            return False

        if criteria.status == "success" and not tx.succeeded:
            return False
        if criteria.status == "failed" and tx.succeeded:
            return False

        tx_ms = tx.block_time * 1000
        if from_ms is not None and tx_ms < from_ms:
            return False
        if to_ms is not None and tx_ms > to_ms:
            return False

        if tx.tx_type == TxKind.TOKEN_TRANSFER:
            amount = _amount_key(tx)
            if min_amount is not None and amount < min_amount:
                return False
            if max_amount is not None and amount > max_amount:
                return False

        return True

    return _passes


def apply_filters(
    transactions: Sequence[Transaction],
    criteria: FilterCriteria,
    *,
    tz: tzinfo | None = None,
) -> list[Transaction]:
    """Return the filtered, sorted view of ``transactions`` under ``criteria``.

    ``tz`` pins the timezone used for day boundaries; ``None`` means the local
    timezone. The input is never modified.
    """

    passes = _build_predicate(criteria, tz)
    filtered = [tx for tx in transactions if passes(tx)]
    key = _SORT_KEYS[criteria.sort_by]
    return sorted(filtered, key=key, reverse=criteria.sort_order == "desc")


class FilterSortEngine:
    """Memoising wrapper around :func:`apply_filters`.

    The memo holds a single entry and compares the input sequence by identity
    and the criteria by value, so replacing either invalidates it.
    """

    def __init__(self, *, tz: tzinfo | None = None) -> None:
        self._tz = tz
        self._memo: tuple[Sequence[Transaction], FilterCriteria, list[Transaction]] | None = None

    def apply(
        self, transactions: Sequence[Transaction], criteria: FilterCriteria
    ) -> list[Transaction]:
        memo = self._memo
        if memo is not None and memo[0] is transactions and memo[1] == criteria:
            return list(memo[2])
        view = apply_filters(transactions, criteria, tz=self._tz)
        self._memo = (transactions, criteria, view)
        return list(view)


__all__ = [
    "apply_filters",
    "start_of_day_ms",
    "end_of_day_ms",
    "FilterSortEngine",
]
