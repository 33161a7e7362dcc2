"""Read-only access to the ledger-indexing API.

:class:`PageFetcher` retrieves one page of an account's transactions, single
transactions by id, and balances. It performs no retries: a failed request
raises :class:`~stacks_history.errors.UpstreamError` and the caller decides
whether to try again.

The HTTP session is injectable so tests (and callers that want connection
pooling or custom adapters) can supply their own ``requests.Session``-like
object exposing ``request``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import requests
from pydantic import ValidationError as PydanticValidationError

from .errors import UpstreamError, ValidationError
from .logging_setup import get_logger
from .models import AddressBalance, Page, Transaction
from .network import NetworkContext, normalize_tx_id, validate_address

DEFAULT_PAGE_SIZE: int = 20
# Upper bound accepted by the address transactions endpoint.
MAX_PAGE_SIZE: int = 50


_logger = get_logger("stacks_history.fetcher")


def request_json(
    session: Any,
    method: str,
    url: str,
    *,
    timeout: float | None = None,
    **kwargs: Any,
) -> Any:
    """Issue an HTTP request and return the decoded JSON body.

    Transport errors, non-2xx statuses and undecodable bodies all surface as
    :class:`UpstreamError` (with the original exception chained).
    """

    try:
        resp = session.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        _logger.warning("upstream:request_failed method=%s url=%s error=%s", method, url, e)
        raise UpstreamError(f"request to {url} failed: {e}", url=url) from e

    status = int(resp.status_code)
    if not 200 <= status < 300:
        _logger.warning("upstream:http_error method=%s url=%s status=%d", method, url, status)
        raise UpstreamError(f"HTTP {status} from {url}", status=status, url=url)

    try:
        return resp.json()
    except ValueError as e:
        _logger.warning("upstream:bad_json url=%s", url)
        raise UpstreamError(f"malformed JSON from {url}", status=status, url=url) from e


class PageFetcher:
    """Fetch transaction pages, single transactions, and balances."""

    def __init__(self, session: Any | None = None, *, timeout: float | None = None) -> None:
        self._session = session if session is not None else requests.Session()
        self._timeout = timeout

    @property
    def session(self) -> Any:
        return self._session

    def _get(self, url: str, **kwargs: Any) -> Any:
        return request_json(self._session, "GET", url, timeout=self._timeout, **kwargs)

    # ---- Transactions ---------------------------------------------------

    def fetch(
        self,
        address: str,
        network: NetworkContext,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Page:
        """Fetch one page of ``address``'s transactions starting at ``offset``.

        The address is validated against ``network`` before any request is
        made. A body without a ``results`` list, or with items that do not
        decode, raises :class:`UpstreamError`.
        """

        address = validate_address(address, network)
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise ValidationError(f"offset must be a non-negative integer, got {offset!r}")
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {limit!r}")

        url = f"{network.api_url}/extended/v1/address/{address}/transactions"
        body = self._get(url, params={"offset": offset, "limit": limit})

        results = body.get("results") if isinstance(body, Mapping) else None
        if not isinstance(results, list):
            raise UpstreamError(f"malformed response from {url}: missing 'results'", url=url)

        try:
            txs = tuple(Transaction.from_api(_require_mapping(item)) for item in results)
            page = Page(
                results=txs,
                offset=int(body.get("offset", offset)),
                limit=int(body.get("limit", limit)),
                total=int(body.get("total", len(txs))),
            )
        except (PydanticValidationError, TypeError, ValueError) as e:
            raise UpstreamError(f"malformed transaction page from {url}: {e}", url=url) from e

        _logger.debug(
            "fetch:page address=%s network=%s offset=%d count=%d total=%d",
            address,
            network.key,
            page.offset,
            len(page.results),
            page.total,
        )
        return page

    def fetch_transaction(
        self,
        tx_id: str,
        network: NetworkContext,
        *,
        fallback_sender: str | None = None,
    ) -> Transaction:
        """Look up a single transaction by id.

        Every optional field missing from the response gets a safe default:
        status ``"pending"``, kind ``"token_transfer"``, numbers ``0``, hashes
        ``""`` and the sender falls back to ``fallback_sender`` (the address
        being viewed), so a partially populated record still renders.
        """

        tx_id = normalize_tx_id(tx_id)
        url = f"{network.api_url}/extended/v1/tx/{tx_id}"
        data = self._get(url)
        if not isinstance(data, Mapping):
            raise UpstreamError(f"malformed response from {url}: expected an object", url=url)

        record: dict[str, Any] = {
            "tx_id": data.get("tx_id") or tx_id,
            "tx_status": data.get("tx_status") or "pending",
            "tx_type": data.get("tx_type") or "token_transfer",
            "nonce": data.get("nonce") or 0,
            "block_height": data.get("block_height") or 0,
            "block_time": data.get("block_time") or 0,
            "block_hash": data.get("block_hash") or "",
            "parent_block_hash": data.get("parent_block_hash") or "",
            "sender_address": data.get("sender_address") or fallback_sender or "",
            "token_transfer": data.get("token_transfer")
            or {"amount": "0", "recipient_address": ""},
            "contract_call": data.get("contract_call")
            or {
                "contract_id": data.get("contract_id") or "",
                "function_name": data.get("function_name") or "",
            },
            "smart_contract": data.get("smart_contract")
            or {
                "contract_id": data.get("contract_id") or "",
                "clarity_version": data.get("clarity_version"),
            },
        }
        try:
            return Transaction.model_validate(record)
        except PydanticValidationError as e:
            raise UpstreamError(f"malformed transaction from {url}: {e}", url=url) from e

    # ---- Balances -------------------------------------------------------

    def fetch_balances(self, address: str, network: NetworkContext) -> AddressBalance:
        address = validate_address(address, network)
        url = f"{network.api_url}/extended/v1/address/{address}/balances"
        data = self._get(url)
        if not isinstance(data, Mapping):
            raise UpstreamError(f"malformed response from {url}: expected an object", url=url)
        try:
            return AddressBalance.model_validate(data)
        except PydanticValidationError as e:
            raise UpstreamError(f"malformed balances from {url}: {e}", url=url) from e

    # ---- Broadcast ------------------------------------------------------

    def broadcast(self, raw_tx_hex: str, network: NetworkContext) -> str:
        """Submit a signed transaction and return its txid.

        Used by the category write flow when a wallet hands back a signed but
        not yet broadcast transaction.
        """

        try:
            payload = bytes.fromhex(raw_tx_hex.strip().removeprefix("0x"))
        except ValueError as e:
            raise ValidationError("signed transaction must be hex encoded") from e
        if not payload:
            raise ValidationError("signed transaction is empty")

        url = f"{network.api_url}/v2/transactions"
        body = request_json(
            self._session,
            "POST",
            url,
            timeout=self._timeout,
            data=payload,
            headers={"Content-Type": "application/octet-stream"},
        )
        txid = body if isinstance(body, str) else None
        if txid is None and isinstance(body, Mapping):
            txid = body.get("txid")
        if not isinstance(txid, str):
            raise UpstreamError(f"broadcast to {url} returned no txid", url=url)
        return normalize_tx_id(txid)


def _require_mapping(item: Any) -> Mapping[str, Any]:
    if not isinstance(item, Mapping):
        raise TypeError(f"transaction item must be an object, got {type(item).__name__}")
    return item


__all__ = ["DEFAULT_PAGE_SIZE", "MAX_PAGE_SIZE", "PageFetcher", "request_json"]
