# ruff: noqa: I001
"""CLI for the ``stacks_history`` package.

Typer-based console interface over the fetcher, store, filter engine,
category bridge, and exporter. Environment variables (API overrides and the
category contract identifiers) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs; the network is chosen once with the
global ``--network`` option and threaded explicitly into every component.
"""

from __future__ import annotations

import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any, NoReturn

import requests
import typer
from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError

from .categories import SUGGESTED_CATEGORIES, CategoryBridge, NodeReadOnlyCaller
from .errors import StacksHistoryError
from .export import ExportOptions, export_transactions
from .fetcher import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PageFetcher
from .logging_setup import configure_logging
from .models import FilterCriteria, Transaction, microstx_to_stx
from .network import NETWORK_KEYS, NetworkContext
from .store import TransactionStore, render_view
from .wallet import ConsoleWallet, Wallet


# ---- Seams (replaced in tests) ----------------------------------------------


def _make_session() -> Any:
    return requests.Session()


def _make_wallet() -> Wallet:
    return ConsoleWallet(echo=typer.echo)


# ---- Small module-level helpers used by CLI commands -------------------------


def _fail(message: str, code: int = 1) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    raise typer.Exit(code)


def _network(ctx: typer.Context) -> NetworkContext:
    return ctx.find_root().obj


def _format_time(block_time: int) -> str:
    if not block_time:
        return "-"
    return datetime.fromtimestamp(block_time, tz=UTC).strftime("%Y-%m-%d %H:%M:%S")


def _format_row(tx: Transaction) -> str:
    amount = tx.amount_stx
    amount_s = f"{amount:.6f} STX" if amount is not None else ""
    return (
        f"{tx.tx_id[:12]}…  {tx.tx_type:<17} {tx.tx_status:<18} "
        f"#{tx.block_height:<8} {_format_time(tx.block_time)}  {amount_s}"
    ).rstrip()


def _build_criteria(
    kind: str,
    status: str,
    date_from: datetime | None,
    date_to: datetime | None,
    min_amount: str | None,
    max_amount: str | None,
    sort_by: str,
    order: str,
) -> FilterCriteria:
    try:
        return FilterCriteria(
            kind=kind,
            status=status,
            date_from=date_from.date() if date_from else None,
            date_to=date_to.date() if date_to else None,
            min_amount=min_amount,
            max_amount=max_amount,
            sort_by=sort_by,
            sort_order=order,
        )
    except PydanticValidationError as e:
        _fail(f"invalid filters: {e.errors()[0].get('msg', e)}")


def _load_pages(store: TransactionStore, pages: int) -> None:
    """Load ``pages`` pages (``0`` loads until the history is exhausted)."""

    loaded = 0
    while store.has_more and (pages == 0 or loaded < pages):
        if store.load_more() is None:
            break
        loaded += 1


# Option objects shared by ``txs`` and ``export``.
PAGES_OPTION = typer.Option(
    1, "--pages", min=0, help="Pages to load before filtering (0 loads everything)."
)
PAGE_SIZE_OPTION = typer.Option(
    DEFAULT_PAGE_SIZE, "--page-size", min=1, max=MAX_PAGE_SIZE, help="Transactions per page."
)
KIND_OPTION = typer.Option(
    "all",
    "--kind",
    help="token_transfer, contract_call, smart_contract, coinbase, poison_microblock, or all.",
)
STATUS_OPTION = typer.Option("all", "--status", help="success, failed, or all.")
FROM_OPTION = typer.Option(None, "--from", formats=["%Y-%m-%d"], help="First day (local time).")
TO_OPTION = typer.Option(None, "--to", formats=["%Y-%m-%d"], help="Last day, inclusive.")
MIN_OPTION = typer.Option(None, "--min-amount", help="Minimum transfer amount in STX.")
MAX_OPTION = typer.Option(None, "--max-amount", help="Maximum transfer amount in STX.")
SORT_OPTION = typer.Option("block_time", "--sort-by", help="block_height, block_time, or amount.")
ORDER_OPTION = typer.Option("desc", "--order", help="asc or desc.")


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Browse a Stacks account's transaction history, tag transactions with "
        "on-chain categories, and export filtered views. Loads settings from a "
        "local .env before running."
    ),
)
category_app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Read or write the on-chain category of a transaction.",
)
app.add_typer(category_app, name="category")


@app.callback()
def _root(
    ctx: typer.Context,
    network: Annotated[
        str, typer.Option("--network", "-n", help=f"One of {', '.join(NETWORK_KEYS)}.")
    ] = "mainnet",
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables), configures logging, and resolves the
    selected network once for all subcommands.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()
    try:
        ctx.obj = NetworkContext.from_env(network)
    except StacksHistoryError as e:
        _fail(str(e))


@app.command("txs")
def txs_cmd(
    ctx: typer.Context,
    address: str,
    pages: int = PAGES_OPTION,
    page_size: int = PAGE_SIZE_OPTION,
    kind: str = KIND_OPTION,
    status: str = STATUS_OPTION,
    date_from: datetime | None = FROM_OPTION,
    date_to: datetime | None = TO_OPTION,
    min_amount: str | None = MIN_OPTION,
    max_amount: str | None = MAX_OPTION,
    sort_by: str = SORT_OPTION,
    order: str = ORDER_OPTION,
) -> None:
    """List an address's transactions, filtered and sorted."""

    network = _network(ctx)
    criteria = _build_criteria(
        kind, status, date_from, date_to, min_amount, max_amount, sort_by, order
    )
    try:
        store = TransactionStore(
            PageFetcher(_make_session()), address, network, page_size=page_size
        )
        _load_pages(store, pages)
    except StacksHistoryError as e:
        _fail(str(e))

    view = render_view(store, criteria)
    for tx in view:
        typer.echo(_format_row(tx))
    if not view and criteria.has_active_filters():
        typer.echo("No transactions match the current filters.")
    total = store.total if store.total is not None else len(store)
    typer.echo(f"Showing {len(view)} of {len(store)} loaded ({total} total).")
    if store.has_more:
        typer.echo("More transactions available; pass --pages to load more.")


@app.command("tx")
def tx_cmd(
    ctx: typer.Context,
    tx_id: str,
    address: Annotated[
        str | None, typer.Option("--address", help="Viewed address, used as sender fallback.")
    ] = None,
) -> None:
    """Show one transaction in detail."""

    network = _network(ctx)
    try:
        tx = PageFetcher(_make_session()).fetch_transaction(
            tx_id, network, fallback_sender=address
        )
    except StacksHistoryError as e:
        _fail(str(e))

    typer.echo(f"Transaction  {tx.tx_id}")
    typer.echo(f"Type         {tx.tx_type}")
    typer.echo(f"Status       {tx.tx_status}")
    typer.echo(f"Block        #{tx.block_height} {tx.block_hash}")
    typer.echo(f"Time         {_format_time(tx.block_time)}")
    typer.echo(f"Sender       {tx.sender_address}")
    typer.echo(f"Nonce        {tx.nonce}")
    if tx.amount_stx is not None and tx.token_transfer is not None:
        typer.echo(f"Recipient    {tx.token_transfer.recipient_address}")
        typer.echo(f"Amount       {tx.amount_stx:.6f} STX")
    if tx.tx_type == "contract_call" and tx.contract_call is not None:
        typer.echo(f"Contract     {tx.contract_call.contract_id}")
        typer.echo(f"Function     {tx.contract_call.function_name}")
    if tx.tx_type == "smart_contract" and tx.smart_contract is not None:
        typer.echo(f"Contract     {tx.smart_contract.contract_id}")
    typer.echo(f"Explorer     {network.explorer_link(f'txid/{tx.tx_id}')}")


@app.command("balance")
def balance_cmd(ctx: typer.Context, address: str) -> None:
    """Show an address's STX and token balances."""

    network = _network(ctx)
    try:
        bal = PageFetcher(_make_session()).fetch_balances(address, network)
    except StacksHistoryError as e:
        _fail(str(e))

    typer.echo(f"STX balance     {microstx_to_stx(bal.stx.balance):.6f}")
    typer.echo(f"Locked          {microstx_to_stx(bal.stx.locked):.6f}")
    typer.echo(f"Total sent      {microstx_to_stx(bal.stx.total_sent):.6f}")
    typer.echo(f"Total received  {microstx_to_stx(bal.stx.total_received):.6f}")
    typer.echo(f"Fees paid       {microstx_to_stx(bal.stx.total_fees_sent):.6f}")
    typer.echo(
        f"Tokens          {len(bal.fungible_tokens)} fungible, "
        f"{len(bal.non_fungible_tokens)} non-fungible"
    )


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    address: str,
    fmt: Annotated[str, typer.Option("--format", "-f", help="csv, json, or xlsx.")] = "csv",
    output_dir: Annotated[
        Path, typer.Option("--output-dir", "-o", file_okay=False, help="Target directory.")
    ] = Path("."),
    include_balance: Annotated[
        bool, typer.Option("--include-balance/--no-include-balance")
    ] = True,
    include_events: Annotated[bool, typer.Option("--include-events")] = False,
    pages: int = PAGES_OPTION,
    page_size: int = PAGE_SIZE_OPTION,
    kind: str = KIND_OPTION,
    status: str = STATUS_OPTION,
    date_from: datetime | None = FROM_OPTION,
    date_to: datetime | None = TO_OPTION,
    min_amount: str | None = MIN_OPTION,
    max_amount: str | None = MAX_OPTION,
    sort_by: str = SORT_OPTION,
    order: str = ORDER_OPTION,
) -> None:
    """Export the filtered view of an address's transactions."""

    network = _network(ctx)
    criteria = _build_criteria(
        kind, status, date_from, date_to, min_amount, max_amount, sort_by, order
    )
    try:
        options = ExportOptions(
            format=fmt, include_balance=include_balance, include_events=include_events
        )
    except PydanticValidationError:
        _fail(f"unsupported export format: {fmt}")

    try:
        store = TransactionStore(
            PageFetcher(_make_session()), address, network, page_size=page_size
        )
        _load_pages(store, pages)
    except StacksHistoryError as e:
        _fail(str(e))

    view = render_view(store, criteria)
    try:
        path = export_transactions(view, store.address, options, output_dir)
    except OSError as e:
        _fail(f"export failed: {e}")
    typer.echo(f"Exported {len(view)} transactions to {path}")


# ---- Category commands -------------------------------------------------------


def _bridge(session: Any) -> CategoryBridge:
    return CategoryBridge(caller=NodeReadOnlyCaller(session), broadcaster=PageFetcher(session))


@category_app.command("get")
def category_get_cmd(
    ctx: typer.Context,
    tx_id: str,
    owner: Annotated[str, typer.Option("--owner", help="Address that set the category.")],
) -> None:
    """Show the category ``owner`` stored for a transaction."""

    network = _network(ctx)
    bridge = _bridge(_make_session())
    if bridge.resolve_contract(network) is None:
        _fail(f"categories are unavailable: no category contract configured for {network.key}")
    try:
        label = bridge.read_category(owner, tx_id, network)
    except StacksHistoryError as e:
        _fail(str(e))
    typer.echo(label if label is not None else "(no category)")


@category_app.command("set")
def category_set_cmd(
    ctx: typer.Context,
    tx_id: str,
    label: Annotated[str | None, typer.Argument(help="Category; prompts when omitted.")] = None,
) -> None:
    """Store a category for a transaction on-chain (requires a wallet signature)."""

    from .term_ui import select_category

    network = _network(ctx)
    bridge = _bridge(_make_session())
    if bridge.resolve_contract(network) is None:
        _fail(f"no category contract configured for {network.key}; cannot save categories")

    if label is None:
        label = select_category(SUGGESTED_CATEGORIES)
        if label is None:
            typer.echo("Cancelled.")
            return

    try:
        outcome = bridge.write_category(tx_id, label, network, _make_wallet())
    except StacksHistoryError as e:
        _fail(str(e))

    if outcome.submitted:
        typer.echo(f"Submitted {outcome.txid}")
        typer.echo(network.explorer_link(f"txid/{outcome.txid}"))
    elif outcome.cancelled:
        typer.echo("Cancelled; no category was saved.")
    else:
        _fail(f"category write failed: {outcome.reason}")


if __name__ == "__main__":  # pragma: no cover
    app()
