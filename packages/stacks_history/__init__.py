"""Public interface for the ``stacks_history`` package.

This module re-exports the components and models that make up the stable
import surface. There is no runtime logic here, only symbol re-exports.
"""

from .categories import (
    SUGGESTED_CATEGORIES,
    CategoryBridge,
    CategoryPanel,
    NodeReadOnlyCaller,
    WriteAttempt,
    WriteOutcome,
    WriteState,
)
from .errors import (
    ConfigurationError,
    DecodeAmbiguity,
    LoadInProgressError,
    StacksHistoryError,
    UpstreamError,
    ValidationError,
    WalletCancelled,
)
from .export import ExportOptions, export_transactions
from .fetcher import PageFetcher
from .filtering import FilterSortEngine, apply_filters
from .models import (
    AddressBalance,
    FilterCriteria,
    Page,
    Transaction,
    TxKind,
)
from .network import ContractId, NetworkContext, normalize_tx_id, validate_address
from .store import TransactionStore, dedupe_by_id, render_view
from .wallet import ConsoleWallet, ContractCallRequest, Wallet, WalletResponse

__all__ = [
    # Components
    "PageFetcher",
    "TransactionStore",
    "FilterSortEngine",
    "CategoryBridge",
    "CategoryPanel",
    "NodeReadOnlyCaller",
    "export_transactions",
    # Functions
    "apply_filters",
    "dedupe_by_id",
    "render_view",
    "normalize_tx_id",
    "validate_address",
    # Models / types
    "AddressBalance",
    "ContractCallRequest",
    "ContractId",
    "ExportOptions",
    "FilterCriteria",
    "NetworkContext",
    "Page",
    "Transaction",
    "TxKind",
    "WalletResponse",
    "WriteAttempt",
    "WriteOutcome",
    "WriteState",
    "SUGGESTED_CATEGORIES",
    # Wallets
    "Wallet",
    "ConsoleWallet",
    # Errors
    "StacksHistoryError",
    "UpstreamError",
    "DecodeAmbiguity",
    "ConfigurationError",
    "WalletCancelled",
    "ValidationError",
    "LoadInProgressError",
]
