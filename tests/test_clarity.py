# ruff: noqa: E402, I001
import sys
from pathlib import Path

import pytest


_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

from stacks_history.clarity import (
    ABSENT,
    MAX_VALUE_DEPTH,
    decode_address,
    deserialize,
    encode_address,
    normalize_optional_tuple,
    serialize_buffer,
    serialize_principal,
    serialize_string_utf8,
    to_hex,
)
from stacks_history.errors import DecodeAmbiguity
from tests.helpers.ledger_stub import (
    MAINNET_ADDR,
    MAINNET_MULTISIG_ADDR,
    TESTNET_ADDR,
    TESTNET_MULTISIG_ADDR,
)

# some(tuple(category: u"Income"))
INCOME_RESULT = "0x0a0c00000001" + "08" + b"category".hex() + "0e00000006" + b"Income".hex()


# ---- c32check addresses ------------------------------------------------------


@pytest.mark.parametrize(
    ("address", "version"),
    [
        (MAINNET_ADDR, 22),
        (MAINNET_MULTISIG_ADDR, 20),
        (TESTNET_ADDR, 26),
        (TESTNET_MULTISIG_ADDR, 21),
    ],
)
def test_decode_address_reads_version_and_hash(address, version):
    got_version, hash160 = decode_address(address)
    assert got_version == version
    assert hash160 == bytes(20)
    assert encode_address(version, hash160) == address


def test_decode_address_rejects_bad_checksum():
    tampered = MAINNET_ADDR[:-1] + ("9" if MAINNET_ADDR[-1] != "9" else "8")
    with pytest.raises(ValueError, match="checksum"):
        decode_address(tampered)


@pytest.mark.parametrize("bad", ["", "XP000000000000000000002Q6VF78", "SP0U", "SP!!!!"])
def test_decode_address_rejects_malformed(bad):
    with pytest.raises(ValueError):
        decode_address(bad)


def test_decode_address_wrong_version_fails_checksum():
    # Same payload under the testnet version byte no longer checks out.
    with pytest.raises(ValueError):
        decode_address("ST" + MAINNET_ADDR[2:])


# ---- Serialisation -----------------------------------------------------------


def test_serialize_standard_principal():
    assert to_hex(serialize_principal(MAINNET_ADDR)) == "0x0516" + "00" * 20


def test_serialize_contract_principal():
    raw = serialize_principal(f"{MAINNET_ADDR}.tx-categories")
    name = b"tx-categories"
    assert raw == bytes([0x06, 22]) + bytes(20) + bytes([len(name)]) + name


def test_serialize_buffer_and_string():
    assert to_hex(serialize_buffer(b"\xab" * 32)) == "0x0200000020" + "ab" * 32
    assert to_hex(serialize_string_utf8("Income")) == "0x0e00000006496e636f6d65"
    # Length prefix counts encoded bytes, not characters.
    assert serialize_string_utf8("é")[1:5] == b"\x00\x00\x00\x02"


# ---- Deserialisation ---------------------------------------------------------


def test_deserialize_optional_tuple():
    assert deserialize(INCOME_RESULT) == {
        "type": "some",
        "value": {
            "type": "tuple",
            "value": {"category": {"type": "string-utf8", "value": "Income"}},
        },
    }


def test_deserialize_scalars_and_principal():
    assert deserialize("0x09") == {"type": "none"}
    assert deserialize("0x03") == {"type": "bool", "value": True}
    assert deserialize(bytes([0x01]) + (42).to_bytes(16, "big")) == {"type": "uint", "value": "42"}
    assert deserialize(bytes([0x00]) + (-1).to_bytes(16, "big", signed=True)) == {
        "type": "int",
        "value": "-1",
    }
    assert deserialize(serialize_principal(TESTNET_ADDR)) == {
        "type": "principal",
        "value": TESTNET_ADDR,
    }
    ok = deserialize(bytes([0x07, 0x03]))
    assert ok == {"type": "ok", "value": {"type": "bool", "value": True}}


@pytest.mark.parametrize("bad", ["0x0e000000", "0x0900", "0xff"])
def test_deserialize_rejects_truncated_trailing_and_unknown(bad):
    with pytest.raises(ValueError):
        deserialize(bad)


def test_deserialize_bounds_nesting_depth():
    at_limit = deserialize("0x" + "0a" * MAX_VALUE_DEPTH + "09")
    assert at_limit["type"] == "some"
    with pytest.raises(ValueError, match="nested deeper"):
        deserialize("0x" + "0a" * (MAX_VALUE_DEPTH + 1) + "09")
    with pytest.raises(ValueError):
        deserialize("0x" + "0a" * 5000 + "09")


# ---- Shape-tolerant optional-tuple normalisation -----------------------------


@pytest.mark.parametrize(
    "raw",
    [
        {"type": "none"},
        {"type": "optionalNone"},
        {"type": "optional", "value": None},
        {"type": "(optional none)", "value": None},
        {"type": "some", "value": None},
    ],
)
def test_none_variants_normalise_to_absent(raw):
    result = normalize_optional_tuple(raw)
    assert result == ABSENT
    assert not result.present
    assert result.text("category") is None


@pytest.mark.parametrize(
    "raw",
    [
        # Typed nodes as produced by deserialize()
        deserialize(INCOME_RESULT),
        # Tuple fields under "data"
        {"type": "optional", "value": {"data": {"category": {"type": "string-utf8", "value": "Income"}}}},
        # Tuple node with "data" instead of "value", bare string field
        {"type": "optionalSome", "value": {"type": "tuple", "data": {"category": "Income"}}},
        # Fully typed signature strings
        {
            "type": "(optional (tuple (category (string-utf8 32))))",
            "value": {
                "type": "(tuple (category (string-utf8 32)))",
                "value": {"category": {"type": "(string-utf8 32)", "value": "Income"}},
            },
        },
        # Optional wrapper dropped once a value is present
        {"type": "tuple", "value": {"category": {"type": "string-utf8", "value": "Income"}}},
        # Fields directly under the optional
        {"type": "some", "value": {"category": "Income"}},
    ],
)
def test_some_variants_yield_the_category(raw):
    result = normalize_optional_tuple(raw)
    assert result.present
    assert result.text("category") == "Income"


def test_non_string_field_reads_as_none():
    raw = {"type": "some", "value": {"type": "tuple", "value": {"category": {"type": "uint", "value": "7"}}}}
    assert normalize_optional_tuple(raw).text("category") is None


@pytest.mark.parametrize(
    "raw",
    [
        "some",
        None,
        {},
        {"type": "list", "value": []},
        {"type": "some", "value": {"type": "uint", "value": "5"}},
        {"type": "some", "value": {"value": {"value": {"value": {"category": "Income"}}}}},
    ],
)
def test_unrecognised_shapes_raise_decode_ambiguity(raw):
    with pytest.raises(DecodeAmbiguity):
        normalize_optional_tuple(raw)
