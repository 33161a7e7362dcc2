"""Export a filtered transaction view to a file.

Three formats are supported:

- ``csv``: fixed leading columns, then type-specific columns appended only
  when at least one transaction of that kind is in the view.
- ``json``: export metadata plus one record per transaction.
- ``xlsx``: tab-separated text with an ``.xlsx`` extension, which spreadsheet
  applications open directly. It is not an OOXML workbook.

The exporter consumes the view as given: it neither filters nor re-sorts.
Files are named ``stacks-transactions-<first 8 chars of address>-<YYYY-MM-DD>``
plus the format's extension, and are written atomically.
"""

from __future__ import annotations

import contextlib
import csv
import io
import json
import os
from collections.abc import Sequence
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from .logging_setup import get_logger
from .models import Transaction, TxKind, microstx_to_stx

type ExportFormat = Literal["csv", "json", "xlsx"]

_EXTENSIONS: dict[str, str] = {"csv": "csv", "json": "json", "xlsx": "xlsx"}

_BASE_HEADERS = (
    "Transaction ID",
    "Type",
    "Status",
    "Block Height",
    "Block Time",
    "Sender Address",
    "Nonce",
)
_BALANCE_HEADERS = ("STX Sent", "STX Received")
_EVENT_HEADERS = ("Transfer Events", "Mint Events", "Burn Events")


_logger = get_logger("stacks_history.export")


class ExportOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    format: ExportFormat = "csv"
    include_balance: bool = True
    include_events: bool = False


def export_filename(address: str, fmt: ExportFormat, today: date | None = None) -> str:
    day = (today or date.today()).isoformat()
    return f"stacks-transactions-{address[:8]}-{day}.{_EXTENSIONS[fmt]}"


def _iso(block_time: int) -> str:
    dt = datetime.fromtimestamp(block_time, tz=UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def _stx(microstx: int) -> str:
    return f"{microstx_to_stx(microstx):.6f}"


def _base_row(tx: Transaction, options: ExportOptions, *, events: bool) -> list[Any]:
    row: list[Any] = [
        tx.tx_id,
        tx.tx_type,
        tx.tx_status,
        tx.block_height,
        _iso(tx.block_time),
        tx.sender_address,
        tx.nonce,
    ]
    if options.include_balance:
        row += [_stx(tx.stx_sent), _stx(tx.stx_received)]
    if events and options.include_events:
        row += [tx.events.transfer, tx.events.mint, tx.events.burn]
    return row


# ---- Renderers ---------------------------------------------------------------


def render_csv(view: Sequence[Transaction], options: ExportOptions) -> str:
    kinds = {tx.tx_type for tx in view}
    has_transfers = TxKind.TOKEN_TRANSFER in kinds
    has_calls = TxKind.CONTRACT_CALL in kinds
    has_contracts = TxKind.SMART_CONTRACT in kinds

    headers = list(_BASE_HEADERS)
    if options.include_balance:
        headers += _BALANCE_HEADERS
    if options.include_events:
        headers += _EVENT_HEADERS
    if has_transfers:
        headers += ["Recipient Address", "Transfer Amount (STX)"]
    if has_calls:
        headers += ["Contract ID", "Function Name"]
    if has_contracts:
        headers += ["Contract ID", "Clarity Version"]

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    for tx in view:
        row = _base_row(tx, options, events=True)
        if has_transfers:
            tt = tx.token_transfer if tx.tx_type == TxKind.TOKEN_TRANSFER else None
            row += [tt.recipient_address, _stx(tt.amount)] if tt else ["", ""]
        if has_calls:
            cc = tx.contract_call if tx.tx_type == TxKind.CONTRACT_CALL else None
            row += [cc.contract_id, cc.function_name] if cc else ["", ""]
        if has_contracts:
            sc = tx.smart_contract if tx.tx_type == TxKind.SMART_CONTRACT else None
            if sc:
                version = "" if sc.clarity_version is None else str(sc.clarity_version)
                row += [sc.contract_id, version]
            else:
                row += ["", ""]
        writer.writerow(row)
    return buf.getvalue()


def _json_record(tx: Transaction, options: ExportOptions) -> dict[str, Any]:
    record: dict[str, Any] = {
        "tx_id": tx.tx_id,
        "tx_type": tx.tx_type,
        "tx_status": tx.tx_status,
        "block_height": tx.block_height,
        "block_time": tx.block_time,
        "block_time_iso": _iso(tx.block_time),
        "sender_address": tx.sender_address,
        "nonce": tx.nonce,
        "block_hash": tx.block_hash,
        "parent_block_hash": tx.parent_block_hash,
    }
    if options.include_balance:
        record["stx_sent"] = _stx(tx.stx_sent)
        record["stx_received"] = _stx(tx.stx_received)
    if options.include_events:
        record["events"] = {"stx": tx.events.model_dump()}
    if tx.tx_type == TxKind.TOKEN_TRANSFER and tx.token_transfer is not None:
        record["token_transfer"] = {
            "recipient_address": tx.token_transfer.recipient_address,
            "amount_stx": _stx(tx.token_transfer.amount),
            "amount_ustx": str(tx.token_transfer.amount),
        }
    if tx.tx_type == TxKind.CONTRACT_CALL and tx.contract_call is not None:
        record["contract_call"] = tx.contract_call.model_dump()
    if tx.tx_type == TxKind.SMART_CONTRACT and tx.smart_contract is not None:
        record["smart_contract"] = tx.smart_contract.model_dump()
    return record


def render_json(
    view: Sequence[Transaction], options: ExportOptions, *, now: datetime | None = None
) -> str:
    exported_at = (now or datetime.now(tz=UTC)).astimezone(UTC)
    payload = {
        "exportDate": exported_at.isoformat().replace("+00:00", "Z"),
        "totalTransactions": len(view),
        "options": {
            "format": options.format,
            "includeBalance": options.include_balance,
            "includeEvents": options.include_events,
        },
        "transactions": [_json_record(tx, options) for tx in view],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def render_tsv(view: Sequence[Transaction], options: ExportOptions) -> str:
    headers = list(_BASE_HEADERS)
    if options.include_balance:
        headers += _BALANCE_HEADERS
    headers += ["Recipient Address", "Transfer Amount (STX)", "Contract ID", "Function Name"]

    lines = ["\t".join(headers)]
    for tx in view:
        row = _base_row(tx, options, events=False)
        tt = tx.token_transfer if tx.tx_type == TxKind.TOKEN_TRANSFER else None
        row += [tt.recipient_address, _stx(tt.amount)] if tt else ["", ""]
        if tx.tx_type == TxKind.CONTRACT_CALL and tx.contract_call is not None:
            row += [tx.contract_call.contract_id, tx.contract_call.function_name]
        elif tx.tx_type == TxKind.SMART_CONTRACT and tx.smart_contract is not None:
            row += [tx.smart_contract.contract_id, ""]
        else:
            row += ["", ""]
        lines.append("\t".join(str(v) for v in row))
    return "\n".join(lines)


# ---- Entry point -------------------------------------------------------------


def export_transactions(
    view: Sequence[Transaction],
    address: str,
    options: ExportOptions,
    directory: str | os.PathLike[str],
    *,
    today: date | None = None,
) -> Path:
    """Write ``view`` to ``directory`` in ``options.format`` and return the path."""

    if options.format == "csv":
        content = render_csv(view, options)
    elif options.format == "json":
        content = render_json(view, options)
    elif options.format == "xlsx":
        content = render_tsv(view, options)
    else:  # pragma: no cover - guarded by ExportOptions validation
        raise ValueError(f"Unsupported export format: {options.format}")

    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / export_filename(address, options.format, today)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise

    _logger.info(
        "export:written path=%s format=%s count=%d", path, options.format, len(view)
    )
    return path


__all__ = [
    "ExportFormat",
    "ExportOptions",
    "export_filename",
    "render_csv",
    "render_json",
    "render_tsv",
    "export_transactions",
]
