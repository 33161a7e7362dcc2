"""Wallet boundary for category writes.

Signing happens outside this package. A :class:`Wallet` receives a
:class:`ContractCallRequest` and answers with a :class:`WalletResponse`, one
of:

- ``submitted(txid)``: the wallet signed and broadcast the transaction;
- ``signed(raw_tx)``: the wallet signed but left broadcasting to us;
- ``cancelled()``: the user declined;
- ``failed(reason)``: anything else went wrong.

:class:`ConsoleWallet` is the terminal hand-off used by the CLI: it prints the
request for an external signer and reads back the result.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from prompt_toolkit import PromptSession

from .network import ContractId, NetworkContext, normalize_tx_id
from .term_ui import prompt_wallet_answer

type ResponseKind = Literal["submitted", "signed", "cancelled", "failed"]


@dataclass(frozen=True, slots=True)
class ContractCallRequest:
    """A public-function call awaiting the user's signature.

    ``function_args`` are consensus-serialised Clarity values, ``0x`` hex.
    """

    contract: ContractId
    function_name: str
    function_args: tuple[str, ...]
    network: NetworkContext

    def to_payload(self) -> dict[str, Any]:
        return {
            "network": self.network.key,
            "apiUrl": self.network.api_url,
            "contractAddress": self.contract.address,
            "contractName": self.contract.name,
            "functionName": self.function_name,
            "functionArgs": list(self.function_args),
        }


@dataclass(frozen=True, slots=True)
class WalletResponse:
    kind: ResponseKind
    txid: str | None = None
    raw_tx: str | None = None
    reason: str | None = None

    @classmethod
    def submitted(cls, txid: str) -> WalletResponse:
        return cls("submitted", txid=txid)

    @classmethod
    def signed(cls, raw_tx: str) -> WalletResponse:
        return cls("signed", raw_tx=raw_tx)

    @classmethod
    def cancelled(cls) -> WalletResponse:
        return cls("cancelled")

    @classmethod
    def failed(cls, reason: str) -> WalletResponse:
        return cls("failed", reason=reason)


class Wallet(Protocol):
    def request_contract_call(self, request: ContractCallRequest) -> WalletResponse:
        """Ask the user to approve ``request``; block until they answer.

        Implementations may raise
        :class:`~stacks_history.errors.WalletCancelled` instead of returning
        ``WalletResponse.cancelled()``.
        """
        ...


def interpret_wallet_answer(answer: str | None) -> WalletResponse:
    """Turn a pasted wallet answer into a :class:`WalletResponse`.

    Empty (or ``None``, e.g. Esc) cancels; 32 bytes of hex is a broadcast
    txid; longer hex is a signed transaction to broadcast ourselves.
    """

    text = (answer or "").strip()
    if not text:
        return WalletResponse.cancelled()
    body = text.removeprefix("0x")
    try:
        bytes.fromhex(body)
    except ValueError:
        return WalletResponse.failed("wallet answer is not hex")
    if len(body) == 64:
        return WalletResponse.submitted(normalize_tx_id(body))
    if len(body) > 64:
        return WalletResponse.signed("0x" + body.lower())
    return WalletResponse.failed("wallet answer is too short to be a txid or transaction")


class ConsoleWallet:
    """Terminal hand-off to an external signer.

    Prints the call as JSON, then prompts for the txid (already broadcast) or
    the signed transaction hex. Empty input, Esc, or Ctrl-C cancels.
    """

    def __init__(
        self,
        *,
        session: PromptSession | None = None,
        echo: Callable[[str], None] = print,
    ) -> None:
        self._session = session
        self._echo = echo

    def request_contract_call(self, request: ContractCallRequest) -> WalletResponse:
        self._echo("Sign the following contract call with your wallet:")
        self._echo(json.dumps(request.to_payload(), indent=2))
        answer = prompt_wallet_answer(session=self._session)
        return interpret_wallet_answer(answer)


__all__ = [
    "ContractCallRequest",
    "WalletResponse",
    "Wallet",
    "interpret_wallet_answer",
    "ConsoleWallet",
]
