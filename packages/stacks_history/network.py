"""Network selection as an explicit value.

A :class:`NetworkContext` bundles everything that depends on the selected
network (API base URL, explorer URL, category contract) so that components
receive it as an argument instead of reading ambient state. Building the API
URL and the contract identifier from the same value keeps reads and writes on
the same chain.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Literal

from .clarity import MAINNET_VERSIONS, TESTNET_VERSIONS, decode_address
from .errors import ValidationError
from .logging_setup import get_logger

type NetworkKey = Literal["mainnet", "testnet"]

NETWORK_KEYS: tuple[NetworkKey, ...] = ("mainnet", "testnet")

_DEFAULT_API_URLS: dict[str, str] = {
    "mainnet": "https://api.hiro.so",
    "testnet": "https://api.testnet.hiro.so",
}
_DEFAULT_EXPLORER_URLS: dict[str, str] = {
    "mainnet": "https://explorer.hiro.so",
    "testnet": "https://explorer.hiro.so/?chain=testnet",
}

# Environment variables (names are part of the public configuration surface)
API_URL_ENV: dict[str, str] = {
    "mainnet": "STACKS_API_URL_MAINNET",
    "testnet": "STACKS_API_URL_TESTNET",
}
CONTRACT_ENV: dict[str, str] = {
    "mainnet": "TX_CATEGORIES_CONTRACT_MAINNET",
    "testnet": "TX_CATEGORIES_CONTRACT_TESTNET",
}


_logger = get_logger("stacks_history.network")


@dataclass(frozen=True, slots=True)
class ContractId:
    """A deployed contract identifier split into ``address`` and ``name``."""

    address: str
    name: str

    @classmethod
    def parse(cls, identifier: str | None) -> ContractId | None:
        """Parse ``"<address>.<name>"``; anything else yields ``None``."""

        if not identifier:
            return None
        address, sep, name = identifier.strip().partition(".")
        if not sep or not address or not name:
            return None
        return cls(address=address, name=name)

    def __str__(self) -> str:
        return f"{self.address}.{self.name}"


@dataclass(frozen=True, slots=True)
class NetworkContext:
    """Everything network-dependent, resolved once and passed explicitly.

    Attributes
    ----------
    key:
        ``"mainnet"`` or ``"testnet"``.
    api_url:
        Base URL of the ledger-indexing API (no trailing slash).
    explorer_url:
        Base URL of the block explorer, used for links in CLI output.
    contract:
        The category contract for this network, or ``None`` when the feature
        is not configured here.
    """

    key: NetworkKey
    api_url: str
    explorer_url: str
    contract: ContractId | None = None

    @classmethod
    def from_env(cls, key: str) -> NetworkContext:
        if key not in NETWORK_KEYS:
            raise ValidationError(f"unknown network {key!r}; expected one of {NETWORK_KEYS}")
        api_url = (os.getenv(API_URL_ENV[key]) or _DEFAULT_API_URLS[key]).rstrip("/")
        contract = ContractId.parse(os.getenv(CONTRACT_ENV[key]))
        return cls(
            key=key,  # type: ignore[arg-type]
            api_url=api_url,
            explorer_url=_DEFAULT_EXPLORER_URLS[key],
            contract=contract,
        )

    @property
    def address_versions(self) -> frozenset[int]:
        return MAINNET_VERSIONS if self.key == "mainnet" else TESTNET_VERSIONS

    def resolve_contract(self) -> ContractId | None:
        """Return the category contract when configured for *this* network.

        A contract whose address belongs to the other network is rejected
        (logged, ``None``) so a testnet contract can never be paired with
        mainnet data or vice versa.
        """

        contract = self.contract
        if contract is None:
            return None
        try:
            validate_address(contract.address, self)
        except ValidationError:
            _logger.warning(
                "category contract %s does not belong to %s; treating as unconfigured",
                contract,
                self.key,
            )
            return None
        return contract

    def explorer_link(self, path: str) -> str:
        base, _, query = self.explorer_url.partition("?")
        link = f"{base.rstrip('/')}/{path.lstrip('/')}"
        return f"{link}?{query}" if query else link


_TX_ID_RE = re.compile(r"^(?:0x)?([0-9a-fA-F]{64})$")


def normalize_tx_id(tx_id: str) -> str:
    """Return ``tx_id`` as lowercase ``0x``-prefixed hex (32 bytes).

    Raises :class:`~stacks_history.errors.ValidationError` for anything that
    is not 64 hex digits with an optional ``0x`` prefix.
    """

    m = _TX_ID_RE.match((tx_id or "").strip())
    if not m:
        raise ValidationError(f"invalid transaction id {tx_id!r}: expected 32-byte hex")
    return "0x" + m.group(1).lower()


def validate_address(address: str, network: NetworkContext) -> str:
    """Return ``address`` when it is a valid account identifier for ``network``.

    Checks the c32check encoding and that the version byte belongs to the
    network (``SP``/``SM`` on mainnet, ``ST``/``SN`` on testnet). Raises
    :class:`~stacks_history.errors.ValidationError` otherwise.
    """

    candidate = (address or "").strip()
    try:
        version, _ = decode_address(candidate)
    except ValueError as e:
        raise ValidationError(f"invalid Stacks address {address!r}: {e}") from e
    if version not in network.address_versions:
        raise ValidationError(f"address {address!r} is not a {network.key} address")
    return candidate


__all__ = [
    "NetworkKey",
    "NETWORK_KEYS",
    "API_URL_ENV",
    "CONTRACT_ENV",
    "ContractId",
    "NetworkContext",
    "validate_address",
    "normalize_tx_id",
]
