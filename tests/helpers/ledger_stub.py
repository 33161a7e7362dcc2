"""Stub HTTP session for the ledger API and node endpoints.

:class:`LedgerStub` matches the subset of ``requests.Session`` the package
uses (``request(method, url, timeout=..., **kwargs)``). Routes map
``(method, url)`` to either a canned :class:`StubResponse` or a callable
receiving the call kwargs, so tests can compute responses from query params.
Every call is recorded for assertions.

Also exposes the fixed, checksum-valid addresses used across tests and small
builders for API-shaped transaction items.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import requests

# 20-byte zero hash160 under each network's version bytes.
MAINNET_ADDR = "SP000000000000000000002Q6VF78"
TESTNET_ADDR = "ST000000000000000000002AMW42H"
MAINNET_MULTISIG_ADDR = "SM" + "0" * 20 + "62QV6X"
TESTNET_MULTISIG_ADDR = "SN" + "0" * 20 + "3YDHWKJ"

MAINNET_API = "https://api.hiro.so"
TESTNET_API = "https://api.testnet.hiro.so"

_BAD_JSON = object()


@dataclass
class StubResponse:
    status_code: int = 200
    body: Any = None

    def json(self) -> Any:
        if self.body is _BAD_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.body


def bad_json(status: int = 200) -> StubResponse:
    return StubResponse(status_code=status, body=_BAD_JSON)


type Route = StubResponse | Callable[[dict[str, Any]], StubResponse]


class LedgerStub:
    """Minimal ``requests.Session`` stand-in routing on ``(method, url)``."""

    def __init__(self, routes: dict[tuple[str, str], Route] | None = None) -> None:
        self.routes: dict[tuple[str, str], Route] = dict(routes or {})
        self.calls: list[dict[str, Any]] = []

    def add(self, method: str, url: str, route: Route) -> None:
        self.routes[(method.upper(), url)] = route

    def request(self, method: str, url: str, **kwargs: Any) -> StubResponse:
        call = {"method": method.upper(), "url": url, **kwargs}
        self.calls.append(call)
        route = self.routes.get((method.upper(), url))
        if route is None:
            raise requests.ConnectionError(f"no stub route for {method} {url}")
        return route(call) if callable(route) else route

    def calls_to(self, url: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["url"] == url]


def tx_id(n: int) -> str:
    return "0x" + f"{n:064x}"


def api_tx(
    n: int,
    *,
    tx_type: str = "token_transfer",
    status: str = "success",
    block_height: int | None = None,
    block_time: int | None = None,
    amount: int = 1_000_000,
    sender: str = MAINNET_ADDR,
    wrapped: bool = True,
) -> dict[str, Any]:
    """Build one API list item; ``wrapped`` mimics the address-transactions shape."""

    tx: dict[str, Any] = {
        "tx_id": tx_id(n),
        "tx_type": tx_type,
        "tx_status": status,
        "block_height": block_height if block_height is not None else 100 + n,
        "block_time": block_time if block_time is not None else 1_700_000_000 + n * 60,
        "nonce": n,
        "sender_address": sender,
        "block_hash": "0x" + "bb" * 32,
        "parent_block_hash": "0x" + "aa" * 32,
    }
    if tx_type == "token_transfer":
        tx["token_transfer"] = {
            "recipient_address": TESTNET_ADDR,
            "amount": str(amount),
            "memo": "0x00",
        }
    elif tx_type == "contract_call":
        tx["contract_call"] = {
            "contract_id": f"{MAINNET_ADDR}.pool",
            "function_name": "stack",
        }
    elif tx_type == "smart_contract":
        tx["smart_contract"] = {"contract_id": f"{MAINNET_ADDR}.token", "clarity_version": 2}
    if not wrapped:
        return tx
    return {
        "tx": tx,
        "stx_sent": str(amount if tx_type == "token_transfer" else 0),
        "stx_received": "0",
        "events": {"stx": {"transfer": 1, "mint": 0, "burn": 0}},
    }


def paged_history(total: int, **item_kwargs: Any) -> Callable[[dict[str, Any]], StubResponse]:
    """Route serving an address history of ``total`` items by offset/limit."""

    def _serve(call: dict[str, Any]) -> StubResponse:
        params = call.get("params") or {}
        offset = int(params.get("offset", 0))
        limit = int(params.get("limit", 20))
        items = [api_tx(i, **item_kwargs) for i in range(offset, min(offset + limit, total))]
        return StubResponse(
            body={"limit": limit, "offset": offset, "total": total, "results": items}
        )

    return _serve


def history_url(address: str, api: str = MAINNET_API) -> str:
    return f"{api}/extended/v1/address/{address}/transactions"
