# ruff: noqa: E402, I001
import sys
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path

import pytest


_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

from pydantic import ValidationError as PydanticValidationError

from stacks_history.filtering import FilterSortEngine, apply_filters, end_of_day_ms, start_of_day_ms
from stacks_history.models import FilterCriteria, Transaction, TxKind
from tests.helpers.ledger_stub import api_tx, tx_id


def _tx(n: int, **kwargs) -> Transaction:
    return Transaction.from_api(api_tx(n, **kwargs))


def _ts(y: int, m: int, d: int, hh: int = 12) -> int:
    return int(datetime(y, m, d, hh, tzinfo=UTC).timestamp())


@pytest.fixture
def mixed() -> list[Transaction]:
    return [
        _tx(1, amount=5_000_000, block_time=_ts(2024, 1, 1)),
        _tx(2, tx_type="contract_call", status="abort_by_response", block_time=_ts(2024, 1, 2)),
        _tx(3, amount=250_000, status="abort_by_post_condition", block_time=_ts(2024, 1, 3)),
        _tx(4, tx_type="smart_contract", block_time=_ts(2024, 1, 4)),
        _tx(5, amount=0, block_time=_ts(2024, 1, 5)),
        _tx(6, tx_type="coinbase", block_time=_ts(2024, 1, 6)),
        _tx(7, amount=12_000_000, status="pending", block_time=_ts(2024, 1, 7)),
    ]


def _ids(view: list[Transaction]) -> list[str]:
    return [tx.tx_id for tx in view]


def test_default_criteria_sort_newest_first(mixed):
    view = apply_filters(mixed, FilterCriteria())
    assert _ids(view) == [tx_id(n) for n in (7, 6, 5, 4, 3, 2, 1)]


def test_apply_filters_is_pure(mixed):
    snapshot = list(mixed)
    criteria = FilterCriteria(kind=TxKind.TOKEN_TRANSFER, sort_by="amount")
    first = apply_filters(mixed, criteria)
    second = apply_filters(mixed, criteria)
    assert first == second
    assert mixed == snapshot


def test_kind_filter(mixed):
    view = apply_filters(mixed, FilterCriteria(kind="contract_call"))
    assert _ids(view) == [tx_id(2)]


def test_success_and_failed_partition_the_set(mixed):
    ok = apply_filters(mixed, FilterCriteria(status="success"))
    failed = apply_filters(mixed, FilterCriteria(status="failed"))
    assert all(tx.tx_status == "success" for tx in ok)
    assert {tx.tx_status for tx in failed} == {"abort_by_response", "abort_by_post_condition", "pending"}
    assert sorted(_ids(ok) + _ids(failed)) == sorted(_ids(mixed))


def test_amount_bounds_apply_to_transfers_only(mixed):
    view = apply_filters(mixed, FilterCriteria(min_amount=Decimal("1"), max_amount=Decimal("10")))
    # Transfer 1 (5 STX) passes; 3 (0.25), 5 (0) and 7 (12) do not; non-transfers pass.
    assert _ids(view) == [tx_id(n) for n in (6, 4, 2, 1)]


def test_zero_bounds_keep_only_zero_value_transfers(mixed):
    criteria = FilterCriteria(kind="token_transfer", min_amount=Decimal(0), max_amount=Decimal(0))
    assert criteria.has_active_filters()
    assert _ids(apply_filters(mixed, criteria)) == [tx_id(5)]


def test_sort_by_amount_descending_puts_non_transfers_last(mixed):
    view = apply_filters(mixed, FilterCriteria(sort_by="amount", sort_order="desc"))
    assert _ids(view)[:3] == [tx_id(7), tx_id(1), tx_id(3)]
    # Non-transfers and the zero transfer share key 0 and keep fetch order.
    assert _ids(view)[3:] == [tx_id(n) for n in (2, 4, 5, 6)]


def test_equal_keys_keep_fetch_order_in_both_directions():
    txs = [_tx(n, block_height=500) for n in (3, 1, 2)]
    for order in ("asc", "desc"):
        view = apply_filters(txs, FilterCriteria(sort_by="block_height", sort_order=order))
        assert _ids(view) == [tx_id(3), tx_id(1), tx_id(2)]


def test_date_range_is_inclusive_of_whole_days(mixed):
    criteria = FilterCriteria(date_from=date(2024, 1, 2), date_to=date(2024, 1, 4), sort_order="asc")
    view = apply_filters(mixed, criteria, tz=UTC)
    assert _ids(view) == [tx_id(2), tx_id(3), tx_id(4)]


def test_end_of_day_boundary():
    day = date(2024, 3, 10)
    start = start_of_day_ms(day, UTC)
    end = end_of_day_ms(day, UTC)
    assert end - start == 86_400_000 - 1
    late = _tx(1, block_time=(end // 1000))
    next_day = _tx(2, block_time=(end // 1000) + 1)
    view = apply_filters([late, next_day], FilterCriteria(date_to=day), tz=UTC)
    assert _ids(view) == [tx_id(1)]


def test_negative_bounds_are_rejected():
    with pytest.raises(PydanticValidationError):
        FilterCriteria(min_amount=Decimal("-1"))


def test_has_active_filters_ignores_sorting():
    assert not FilterCriteria(sort_by="amount", sort_order="asc").has_active_filters()
    assert FilterCriteria(status="failed").has_active_filters()


def test_engine_memoises_but_returns_fresh_lists(mixed):
    engine = FilterSortEngine(tz=UTC)
    criteria = FilterCriteria(kind="token_transfer")
    first = engine.apply(mixed, criteria)
    first.clear()
    second = engine.apply(mixed, criteria)
    assert _ids(second) == [tx_id(n) for n in (7, 5, 3, 1)]
    # New criteria recompute.
    assert _ids(engine.apply(mixed, FilterCriteria(kind="coinbase"))) == [tx_id(6)]
