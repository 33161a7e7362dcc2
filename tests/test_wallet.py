# ruff: noqa: E402, I001
import json
import sys
from pathlib import Path

import pytest


_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from stacks_history.network import ContractId, NetworkContext
from stacks_history.wallet import ConsoleWallet, ContractCallRequest, WalletResponse, interpret_wallet_answer
from tests.helpers.ledger_stub import MAINNET_ADDR


@pytest.mark.parametrize(
    ("answer", "expected"),
    [
        (None, WalletResponse.cancelled()),
        ("", WalletResponse.cancelled()),
        ("   ", WalletResponse.cancelled()),
        ("AB" * 32, WalletResponse.submitted("0x" + "ab" * 32)),
        ("0x" + "cd" * 32, WalletResponse.submitted("0x" + "cd" * 32)),
        ("0x" + "80" * 60, WalletResponse.signed("0x" + "80" * 60)),
    ],
)
def test_interpret_wallet_answer(answer, expected):
    assert interpret_wallet_answer(answer) == expected


@pytest.mark.parametrize("answer", ["hello", "0x1234", "abc"])
def test_interpret_wallet_answer_failures(answer):
    assert interpret_wallet_answer(answer).kind == "failed"


def test_console_wallet_prints_request_and_reads_txid():
    network = NetworkContext.from_env("mainnet")
    request = ContractCallRequest(
        contract=ContractId(MAINNET_ADDR, "tx-categories"),
        function_name="set-category",
        function_args=("0x0200000020" + "00" * 32, "0x0e00000006496e636f6d65"),
        network=network,
    )
    printed: list[str] = []
    txid = "0x" + "ef" * 32
    with create_pipe_input() as pipe:
        pipe.send_text(txid + "\r")
        wallet = ConsoleWallet(session=PromptSession(input=pipe, output=DummyOutput()), echo=printed.append)
        response = wallet.request_contract_call(request)

    assert response == WalletResponse.submitted(txid)
    payload = json.loads(printed[1])
    assert payload["contractAddress"] == MAINNET_ADDR
    assert payload["functionName"] == "set-category"
    assert payload["network"] == "mainnet"
    assert payload["functionArgs"][1] == "0x0e00000006496e636f6d65"
