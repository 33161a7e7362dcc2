"""On-chain transaction categories.

The category contract exposes two functions:

- ``get-category(owner principal, txid (buff 32))`` →
  ``(optional (tuple (category (string-utf8 ...))))`` (read-only);
- ``set-category(txid (buff 32), category (string-utf8 ...))`` →
  ``(response bool ...)``, keyed on-chain by ``(tx-sender, txid)``.

:class:`CategoryBridge` reads and writes that mapping. Reads are a
convenience: any failure (no contract configured, node error, unrecognised
result shape) yields ``None``. Writes go through a
:class:`~stacks_history.wallet.Wallet` and follow an explicit state machine
(:class:`WriteState`); a missing contract is a caller bug and raises
:class:`~stacks_history.errors.ConfigurationError`.

Nothing is cached: every read goes back to the chain.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

from .clarity import (
    deserialize,
    normalize_optional_tuple,
    serialize_buffer,
    serialize_principal,
    serialize_string_utf8,
    to_hex,
)
from .errors import (
    ConfigurationError,
    DecodeAmbiguity,
    UpstreamError,
    ValidationError,
    WalletCancelled,
)
from .fetcher import PageFetcher, request_json
from .logging_setup import get_logger
from .network import ContractId, NetworkContext, normalize_tx_id, validate_address
from .wallet import ContractCallRequest, Wallet, WalletResponse

GET_CATEGORY_FN = "get-category"
SET_CATEGORY_FN = "set-category"
CATEGORY_FIELD = "category"

# Offered to users; the contract stores any label.
SUGGESTED_CATEGORIES: tuple[str, ...] = (
    "Income",
    "Expense",
    "Transfer",
    "Trading",
    "Staking",
    "Fees",
    "NFT",
    "DeFi",
    "Gift",
    "Other",
)

_READ_CONCURRENCY: int = 4


_logger = get_logger("stacks_history.categories")


# ---------------------------------------------------------------------------
# Read-only calls
# ---------------------------------------------------------------------------


class ReadOnlyCaller(Protocol):
    """Performs a read-only contract call and returns the *decoded* result.

    The decoded shape is whatever the decoding layer produces; the bridge
    normalises it.
    """

    def __call__(
        self,
        *,
        contract: ContractId,
        function_name: str,
        arguments: Sequence[str],
        sender: str,
        network: NetworkContext,
    ) -> Any: ...


class NodeReadOnlyCaller:
    """``POST /v2/contracts/call-read/...`` against the network's API node."""

    def __init__(self, session: Any | None = None, *, timeout: float | None = None) -> None:
        if session is None:
            import requests

            session = requests.Session()
        self._session = session
        self._timeout = timeout

    def __call__(
        self,
        *,
        contract: ContractId,
        function_name: str,
        arguments: Sequence[str],
        sender: str,
        network: NetworkContext,
    ) -> Any:
        url = (
            f"{network.api_url}/v2/contracts/call-read/"
            f"{contract.address}/{contract.name}/{function_name}"
        )
        body = request_json(
            self._session,
            "POST",
            url,
            timeout=self._timeout,
            json={"sender": sender, "arguments": list(arguments)},
        )
        if not isinstance(body, Mapping) or not body.get("okay"):
            cause = body.get("cause") if isinstance(body, Mapping) else None
            raise UpstreamError(f"read-only call {function_name} failed: {cause}", url=url)
        result = body.get("result")
        if not isinstance(result, str):
            raise UpstreamError(f"read-only call {function_name} returned no result", url=url)
        return deserialize(result)


# ---------------------------------------------------------------------------
# Write state machine
# ---------------------------------------------------------------------------


class WriteState(StrEnum):
    IDLE = "idle"
    AWAITING_SIGNATURE = "awaiting_signature"
    BROADCASTING = "broadcasting"
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"
    FAILED = "failed"


_TRANSITIONS: dict[WriteState, frozenset[WriteState]] = {
    WriteState.IDLE: frozenset({WriteState.AWAITING_SIGNATURE}),
    WriteState.AWAITING_SIGNATURE: frozenset(
        {WriteState.BROADCASTING, WriteState.CANCELLED, WriteState.FAILED}
    ),
    WriteState.BROADCASTING: frozenset({WriteState.SUBMITTED, WriteState.FAILED}),
    WriteState.SUBMITTED: frozenset(),
    WriteState.CANCELLED: frozenset(),
    WriteState.FAILED: frozenset(),
}


@dataclass(frozen=True, slots=True)
class WriteOutcome:
    """Terminal result of one write attempt."""

    state: WriteState
    txid: str | None = None
    reason: str | None = None

    @property
    def submitted(self) -> bool:
        return self.state is WriteState.SUBMITTED

    @property
    def cancelled(self) -> bool:
        return self.state is WriteState.CANCELLED

    @property
    def failed(self) -> bool:
        return self.state is WriteState.FAILED


@dataclass(slots=True)
class WriteAttempt:
    """Mutable record of one write as it moves through :class:`WriteState`."""

    tx_id: str
    category: str
    network_key: str
    state: WriteState = WriteState.IDLE
    history: list[WriteState] = field(default_factory=lambda: [WriteState.IDLE])
    txid: str | None = None
    reason: str | None = None

    def advance(self, to: WriteState) -> None:
        if to not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal write transition {self.state} -> {to}")
        _logger.info(
            "category_write:%s tx_id=%s network=%s", to.value, self.tx_id, self.network_key
        )
        self.state = to
        self.history.append(to)

    def fail(self, reason: str) -> WriteOutcome:
        self.reason = reason
        self.advance(WriteState.FAILED)
        return self.outcome()

    def outcome(self) -> WriteOutcome:
        if _TRANSITIONS[self.state]:
            raise RuntimeError(f"write attempt not finished (state={self.state})")
        return WriteOutcome(state=self.state, txid=self.txid, reason=self.reason)


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------


def _txid_buffer_arg(tx_id: str) -> str:
    return to_hex(serialize_buffer(bytes.fromhex(tx_id.removeprefix("0x"))))


class CategoryBridge:
    """Read/write bridge to the per-owner on-chain category mapping.

    Parameters
    ----------
    caller:
        Read-only call transport; defaults to :class:`NodeReadOnlyCaller`.
    broadcaster:
        Used to broadcast transactions a wallet signed but did not send;
        defaults to a fresh :class:`~stacks_history.fetcher.PageFetcher`.
    executor:
        Executor for :meth:`start_write`; one private worker thread when
        omitted. A private executor is shut down by :meth:`close` or on
        leaving a ``with`` block; a supplied one is left to its owner.
    """

    def __init__(
        self,
        *,
        caller: ReadOnlyCaller | None = None,
        broadcaster: PageFetcher | None = None,
        executor: Executor | None = None,
    ) -> None:
        self._caller = caller if caller is not None else NodeReadOnlyCaller()
        self._broadcaster = broadcaster
        self._executor = executor
        self._owns_executor = False

    def close(self) -> None:
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            self._owns_executor = False

    def __enter__(self) -> CategoryBridge:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @staticmethod
    def resolve_contract(network: NetworkContext) -> ContractId | None:
        return network.resolve_contract()

    # ---- Reads ----------------------------------------------------------

    def read_category(self, owner: str, tx_id: str, network: NetworkContext) -> str | None:
        """Return the label ``owner`` stored for ``tx_id``, or ``None``.

        Malformed ``owner``/``tx_id`` raise
        :class:`~stacks_history.errors.ValidationError` before any call. Every
        other failure degrades to ``None``.
        """

        owner = validate_address(owner, network)
        tx_id = normalize_tx_id(tx_id)

        contract = self.resolve_contract(network)
        if contract is None:
            _logger.debug("category_read:unavailable network=%s", network.key)
            return None

        arguments = (to_hex(serialize_principal(owner)), _txid_buffer_arg(tx_id))
        try:
            raw = self._caller(
                contract=contract,
                function_name=GET_CATEGORY_FN,
                arguments=arguments,
                sender=owner,
                network=network,
            )
        except Exception as e:  # noqa: BLE001 - any failed call reads as "no category"
            _logger.warning("category_read:call_failed tx_id=%s error=%s", tx_id, e)
            return None

        try:
            return normalize_optional_tuple(raw).text(CATEGORY_FIELD)
        except DecodeAmbiguity as e:
            _logger.debug("category_read:decode_ambiguity tx_id=%s detail=%s", tx_id, e)
        except Exception as e:  # noqa: BLE001 - unrecognised shapes read as "no category"
            _logger.warning("category_read:decode_failed tx_id=%s error=%s", tx_id, e)
        return None

    def read_categories(
        self,
        owner: str,
        tx_ids: Sequence[str],
        network: NetworkContext,
        *,
        concurrency: int = _READ_CONCURRENCY,
    ) -> list[str | None]:
        """Read several categories with bounded concurrency, preserving order."""

        if not isinstance(concurrency, int) or concurrency < 1:
            raise ValueError("concurrency must be a positive integer")
        owner = validate_address(owner, network)
        ids = [normalize_tx_id(t) for t in tx_ids]
        if not ids:
            return []
        with ThreadPoolExecutor(max_workers=min(concurrency, len(ids))) as pool:
            return list(pool.map(lambda t: self.read_category(owner, t, network), ids))

    # ---- Writes ---------------------------------------------------------

    def write_category(
        self,
        tx_id: str,
        category: str,
        network: NetworkContext,
        wallet: Wallet,
        *,
        on_finish: Callable[[str], None] | None = None,
        on_cancel: Callable[[], None] | None = None,
    ) -> WriteOutcome:
        """Ask ``wallet`` to sign ``set-category(tx_id, category)``.

        Blocks until the wallet answers. ``on_finish(txid)`` runs after a
        successful submission, ``on_cancel()`` when the user declines. There is
        no retry; a cancelled or failed write leaves the chain unchanged.

        Raises
        ------
        ValidationError
            Empty ``category`` or malformed ``tx_id``.
        ConfigurationError
            No category contract is configured for ``network``.
        """

        tx_id = normalize_tx_id(tx_id)
        label = category.strip() if isinstance(category, str) else ""
        if not label:
            raise ValidationError("category must be a non-empty string")

        contract = self.resolve_contract(network)
        if contract is None:
            raise ConfigurationError(
                f"no category contract configured for {network.key}; "
                f"set the contract identifier for this network to enable writes"
            )

        attempt = WriteAttempt(tx_id=tx_id, category=label, network_key=network.key)
        request = ContractCallRequest(
            contract=contract,
            function_name=SET_CATEGORY_FN,
            function_args=(_txid_buffer_arg(tx_id), to_hex(serialize_string_utf8(label))),
            network=network,
        )

        attempt.advance(WriteState.AWAITING_SIGNATURE)
        try:
            response = wallet.request_contract_call(request)
        except WalletCancelled:
            response = WalletResponse.cancelled()
        except Exception as e:  # noqa: BLE001 - wallet is external; report as failure
            _logger.warning("category_write:wallet_error tx_id=%s error=%s", tx_id, e)
            response = WalletResponse.failed(str(e) or type(e).__name__)

        if response.kind == "cancelled":
            attempt.advance(WriteState.CANCELLED)
            if on_cancel is not None:
                on_cancel()
            return attempt.outcome()
        if response.kind == "failed":
            return attempt.fail(response.reason or "wallet reported a failure")

        attempt.advance(WriteState.BROADCASTING)
        try:
            if response.kind == "signed":
                broadcaster = self._broadcaster or PageFetcher()
                attempt.txid = broadcaster.broadcast(response.raw_tx or "", network)
            else:
                attempt.txid = normalize_tx_id(response.txid or "")
        except (UpstreamError, ValidationError) as e:
            return attempt.fail(str(e))

        attempt.advance(WriteState.SUBMITTED)
        if on_finish is not None:
            on_finish(attempt.txid)
        return attempt.outcome()

    def start_write(
        self,
        tx_id: str,
        category: str,
        network: NetworkContext,
        wallet: Wallet,
        *,
        on_finish: Callable[[str], None] | None = None,
        on_cancel: Callable[[], None] | None = None,
    ) -> Future[WriteOutcome]:
        """Run :meth:`write_category` in the background.

        Validation and configuration errors are raised here, synchronously,
        so only the wallet wait happens off-thread.
        """

        normalize_tx_id(tx_id)
        if not (isinstance(category, str) and category.strip()):
            raise ValidationError("category must be a non-empty string")
        if self.resolve_contract(network) is None:
            raise ConfigurationError(f"no category contract configured for {network.key}")
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="category-write")
            self._owns_executor = True
        return self._executor.submit(
            self.write_category,
            tx_id,
            category,
            network,
            wallet,
            on_finish=on_finish,
            on_cancel=on_cancel,
        )


# ---------------------------------------------------------------------------
# Detail-view loader
# ---------------------------------------------------------------------------


class CategoryPanel:
    """Loads the category for whichever transaction is open in a detail view.

    Each :meth:`open` starts a background read tagged with a generation
    number. Opening another transaction or closing the view bumps the
    generation, and a read that finishes under an older generation is
    discarded rather than applied. The in-flight call itself is not aborted.
    """

    def __init__(
        self,
        bridge: CategoryBridge,
        owner: str,
        network: NetworkContext,
        *,
        executor: Executor,
        on_loaded: Callable[[str, str | None], None] | None = None,
    ) -> None:
        self._bridge = bridge
        self._owner = owner
        self._network = network
        self._executor = executor
        self._on_loaded = on_loaded
        self._lock = threading.Lock()
        self._generation = 0
        self.current: str | None = None
        self.category: str | None = None
        self.loading = False

    def open(self, tx_id: str) -> Future[str | None]:
        with self._lock:
            self._generation += 1
            token = self._generation
            self.current = tx_id
            self.category = None
            self.loading = True
        fut = self._executor.submit(self._bridge.read_category, self._owner, tx_id, self._network)
        fut.add_done_callback(lambda f: self._apply(token, tx_id, f))
        return fut

    def close(self) -> None:
        with self._lock:
            self._generation += 1
            self.current = None
            self.category = None
            self.loading = False

    def _apply(self, token: int, tx_id: str, fut: Future[str | None]) -> None:
        try:
            value = fut.result()
        except Exception as e:  # noqa: BLE001 - a failed read shows as "no category"
            _logger.debug("category_panel:read_failed tx_id=%s error=%s", tx_id, e)
            value = None
        with self._lock:
            if token != self._generation:
                _logger.debug("category_panel:stale_result_discarded tx_id=%s", tx_id)
                return
            self.category = value
            self.loading = False
        if self._on_loaded is not None:
            self._on_loaded(tx_id, value)


__all__ = [
    "GET_CATEGORY_FN",
    "SET_CATEGORY_FN",
    "CATEGORY_FIELD",
    "SUGGESTED_CATEGORIES",
    "ReadOnlyCaller",
    "NodeReadOnlyCaller",
    "WriteState",
    "WriteOutcome",
    "WriteAttempt",
    "CategoryBridge",
    "CategoryPanel",
]
