"""Data models for ``stacks_history``.

Records decoded from the ledger API are immutable pydantic models. Raw API
items arrive either bare (``{"tx_id": ..., "tx_type": ...}``) or wrapped with
account-relative totals (``{"tx": {...}, "stx_sent": ..., "events": ...}``);
:meth:`Transaction.from_api` flattens both into one :class:`Transaction`.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MICROSTX_PER_STX = Decimal(1_000_000)


class TxKind(StrEnum):
    TOKEN_TRANSFER = "token_transfer"
    CONTRACT_CALL = "contract_call"
    SMART_CONTRACT = "smart_contract"
    COINBASE = "coinbase"
    POISON_MICROBLOCK = "poison_microblock"


def microstx_to_stx(amount: int | str | Decimal) -> Decimal:
    return Decimal(amount) / MICROSTX_PER_STX


# ---------------------------------------------------------------------------
# Transaction payloads
# ---------------------------------------------------------------------------


class _Record(BaseModel):
    # Lax mode: the API encodes microSTX amounts as decimal strings.
    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # Pending transactions report null heights/times; fall back to defaults.
        if isinstance(data, Mapping):
            return {k: v for k, v in data.items() if v is not None}
        return data


class TokenTransfer(_Record):
    recipient_address: str = ""
    amount: int = 0
    memo: str = ""


class ContractCall(_Record):
    contract_id: str = ""
    function_name: str = ""


class SmartContract(_Record):
    contract_id: str = ""
    clarity_version: int | None = None


class StxEventCounts(_Record):
    transfer: int = 0
    mint: int = 0
    burn: int = 0


class Transaction(_Record):
    """One account transaction, immutable once decoded.

    ``tx_type`` stays a plain string so kinds the API adds later still
    decode; the five known kinds are listed in :class:`TxKind`.
    """

    tx_id: str
    tx_type: str
    tx_status: str
    block_height: int = Field(default=0, ge=0)
    block_time: int = 0
    nonce: int = Field(default=0, ge=0)
    sender_address: str = ""
    block_hash: str = ""
    parent_block_hash: str = ""
    token_transfer: TokenTransfer | None = None
    contract_call: ContractCall | None = None
    smart_contract: SmartContract | None = None
    # Account-relative totals (only present on wrapped list items)
    stx_sent: int = 0
    stx_received: int = 0
    events: StxEventCounts = StxEventCounts()

    @classmethod
    def from_api(cls, item: Mapping[str, Any]) -> Transaction:
        """Decode one API list item (bare or ``{"tx": ...}``-wrapped)."""

        inner = item.get("tx")
        if not isinstance(inner, Mapping):
            return cls.model_validate(item)
        events = item.get("events")
        stx_events = events.get("stx") if isinstance(events, Mapping) else None
        merged: dict[str, Any] = dict(inner)
        merged["stx_sent"] = item.get("stx_sent") or 0
        merged["stx_received"] = item.get("stx_received") or 0
        if isinstance(stx_events, Mapping):
            merged["events"] = stx_events
        return cls.model_validate(merged)

    @property
    def id(self) -> str:
        return self.tx_id

    @property
    def succeeded(self) -> bool:
        return self.tx_status == "success"

    @property
    def amount_stx(self) -> Decimal | None:
        """Transfer amount in STX for token transfers, else ``None``."""

        if self.tx_type != TxKind.TOKEN_TRANSFER or self.token_transfer is None:
            return None
        return microstx_to_stx(self.token_transfer.amount)


class Page(BaseModel):
    """One fetch result. ``total`` is the upstream count at fetch time."""

    model_config = ConfigDict(frozen=True)

    results: tuple[Transaction, ...]
    offset: int = Field(ge=0)
    limit: int = Field(ge=0)
    total: int = Field(ge=0)

    @model_validator(mode="after")
    def _results_within_limit(self) -> Page:
        if len(self.results) > self.limit:
            raise ValueError(
                f"page holds {len(self.results)} results but limit is {self.limit}"
            )
        return self


# ---------------------------------------------------------------------------
# Filter criteria
# ---------------------------------------------------------------------------


class FilterCriteria(BaseModel):
    """Immutable filter/sort settings; replaced wholesale on every change."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: TxKind | Literal["all"] = "all"
    status: Literal["success", "failed", "all"] = "all"
    date_from: date | None = None
    date_to: date | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    sort_by: Literal["block_height", "block_time", "amount"] = "block_time"
    sort_order: Literal["asc", "desc"] = "desc"

    @field_validator("min_amount", "max_amount")
    @classmethod
    def _non_negative(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError("amount bounds must be non-negative")
        return v

    def has_active_filters(self) -> bool:
        return (
            self.kind != "all"
            or self.status != "all"
            or self.date_from is not None
            or self.date_to is not None
            or self.min_amount is not None
            or self.max_amount is not None
        )


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


class StxBalance(_Record):
    balance: int = 0
    total_sent: int = 0
    total_received: int = 0
    total_fees_sent: int = 0
    total_miner_rewards_received: int = 0
    locked: int = 0
    lock_height: int = 0


class FungibleTokenBalance(_Record):
    balance: int = 0
    total_sent: int = 0
    total_received: int = 0


class NonFungibleTokenBalance(_Record):
    count: int = 0
    total_sent: int = 0
    total_received: int = 0


class AddressBalance(_Record):
    stx: StxBalance = StxBalance()
    fungible_tokens: dict[str, FungibleTokenBalance] = {}
    non_fungible_tokens: dict[str, NonFungibleTokenBalance] = {}


__all__ = [
    "MICROSTX_PER_STX",
    "TxKind",
    "microstx_to_stx",
    "TokenTransfer",
    "ContractCall",
    "SmartContract",
    "StxEventCounts",
    "Transaction",
    "Page",
    "FilterCriteria",
    "StxBalance",
    "FungibleTokenBalance",
    "NonFungibleTokenBalance",
    "AddressBalance",
]
