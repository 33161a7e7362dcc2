"""Clarity value codec and contract-call result normalisation.

Three layers live here:

- c32check address handling (``decode_address`` / ``encode_address``), used to
  validate account identifiers and to serialise principals.
- Consensus (de)serialisation of Clarity values. Only the argument types the
  category contract needs are serialised; deserialisation covers every value
  type a read-only call can return and emits JSON-like typed nodes
  (``{"type": ..., "value": ...}``).
- ``normalize_optional_tuple``: the shape-tolerant adapter that turns any of
  the known decodings of an ``(optional (tuple ...))`` result into a single
  canonical :class:`OptionalTuple`.
"""

from __future__ import annotations

import hashlib
import struct
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .errors import DecodeAmbiguity

# ---------------------------------------------------------------------------
# c32check
# ---------------------------------------------------------------------------

C32_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_C32_NORMALIZE = str.maketrans({"O": "0", "L": "1", "I": "1"})

# Address version bytes (single-sig / multi-sig) per network.
MAINNET_VERSIONS: frozenset[int] = frozenset({22, 20})  # SP / SM
TESTNET_VERSIONS: frozenset[int] = frozenset({26, 21})  # ST / SN


def _sha256d(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def c32_encode(data: bytes) -> str:
    n = int.from_bytes(data, "big")
    digits: list[str] = []
    while n:
        n, r = divmod(n, 32)
        digits.append(C32_ALPHABET[r])
    # Each leading zero byte is carried as one leading "0" digit.
    leading = len(data) - len(data.lstrip(b"\x00"))
    return "0" * leading + "".join(reversed(digits))


def c32_decode(text: str) -> bytes:
    s = text.upper().translate(_C32_NORMALIZE)
    if not s or any(ch not in C32_ALPHABET for ch in s):
        raise ValueError(f"not a c32 string: {text!r}")
    leading = len(s) - len(s.lstrip("0"))
    n = 0
    for ch in s:
        n = n * 32 + C32_ALPHABET.index(ch)
    body = n.to_bytes((n.bit_length() + 7) // 8, "big") if n else b""
    return b"\x00" * leading + body


def decode_address(address: str) -> tuple[int, bytes]:
    """Return ``(version, hash160)`` for a c32check-encoded account address.

    Raises ``ValueError`` on a bad prefix, charset, length, or checksum.
    """

    if len(address) < 5 or address[0] != "S":
        raise ValueError(f"address must start with 'S': {address!r}")
    version_char = address[1].upper().translate(_C32_NORMALIZE)
    if version_char not in C32_ALPHABET:
        raise ValueError(f"invalid address version character: {address!r}")
    version = C32_ALPHABET.index(version_char)
    data = c32_decode(address[2:])
    if len(data) != 24:
        raise ValueError(f"address payload must be 24 bytes, got {len(data)}")
    hash160, checksum = data[:20], data[20:]
    if _sha256d(bytes([version]) + hash160)[:4] != checksum:
        raise ValueError(f"address checksum mismatch: {address!r}")
    return version, hash160


def encode_address(version: int, hash160: bytes) -> str:
    if not 0 <= version < 32:
        raise ValueError("address version must fit in 5 bits")
    if len(hash160) != 20:
        raise ValueError("hash160 must be 20 bytes")
    checksum = _sha256d(bytes([version]) + hash160)[:4]
    return "S" + C32_ALPHABET[version] + c32_encode(hash160 + checksum)


# ---------------------------------------------------------------------------
# Serialisation (function arguments)
# ---------------------------------------------------------------------------

_T_INT = 0x00
_T_UINT = 0x01
_T_BUFFER = 0x02
_T_TRUE = 0x03
_T_FALSE = 0x04
_T_STANDARD_PRINCIPAL = 0x05
_T_CONTRACT_PRINCIPAL = 0x06
_T_OK = 0x07
_T_ERR = 0x08
_T_NONE = 0x09
_T_SOME = 0x0A
_T_LIST = 0x0B
_T_TUPLE = 0x0C
_T_STRING_ASCII = 0x0D
_T_STRING_UTF8 = 0x0E

# Clarity type-depth limit; deeper values are rejected when decoding.
MAX_VALUE_DEPTH = 32


def serialize_principal(principal: str) -> bytes:
    """Serialise a standard (``SP...``) or contract (``SP....name``) principal."""

    address, _, contract_name = principal.partition(".")
    version, hash160 = decode_address(address)
    if not contract_name:
        return bytes([_T_STANDARD_PRINCIPAL, version]) + hash160
    name = contract_name.encode("ascii")
    if len(name) > 128:
        raise ValueError("contract name must be at most 128 characters")
    return bytes([_T_CONTRACT_PRINCIPAL, version]) + hash160 + bytes([len(name)]) + name


def serialize_buffer(data: bytes) -> bytes:
    return bytes([_T_BUFFER]) + struct.pack(">I", len(data)) + data


def serialize_string_utf8(text: str) -> bytes:
    raw = text.encode("utf-8")
    return bytes([_T_STRING_UTF8]) + struct.pack(">I", len(raw)) + raw


def to_hex(value: bytes) -> str:
    return "0x" + value.hex()


# ---------------------------------------------------------------------------
# Deserialisation (read-only call results)
# ---------------------------------------------------------------------------


class _Reader:
    __slots__ = ("_data", "pos")

    def __init__(self, data: bytes) -> None:
        self._data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        end = self.pos + n
        if end > len(self._data):
            raise ValueError("truncated Clarity value")
        chunk = self._data[self.pos : end]
        self.pos = end
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u32(self) -> int:
        return struct.unpack(">I", self.take(4))[0]

    @property
    def exhausted(self) -> bool:
        return self.pos == len(self._data)


def _read_node(r: _Reader, depth: int = 0) -> dict[str, Any]:
    if depth > MAX_VALUE_DEPTH:
        raise ValueError(f"Clarity value nested deeper than {MAX_VALUE_DEPTH}")
    tag = r.u8()
    if tag == _T_INT:
        return {"type": "int", "value": str(int.from_bytes(r.take(16), "big", signed=True))}
    if tag == _T_UINT:
        return {"type": "uint", "value": str(int.from_bytes(r.take(16), "big"))}
    if tag == _T_BUFFER:
        raw = r.take(r.u32())
        return {"type": f"(buff {len(raw)})", "value": to_hex(raw)}
    if tag in (_T_TRUE, _T_FALSE):
        return {"type": "bool", "value": tag == _T_TRUE}
    if tag == _T_STANDARD_PRINCIPAL:
        version = r.u8()
        return {"type": "principal", "value": encode_address(version, r.take(20))}
    if tag == _T_CONTRACT_PRINCIPAL:
        version = r.u8()
        address = encode_address(version, r.take(20))
        name = r.take(r.u8()).decode("ascii")
        return {"type": "principal", "value": f"{address}.{name}"}
    if tag == _T_OK:
        return {"type": "ok", "value": _read_node(r, depth + 1)}
    if tag == _T_ERR:
        return {"type": "err", "value": _read_node(r, depth + 1)}
    if tag == _T_NONE:
        return {"type": "none"}
    if tag == _T_SOME:
        return {"type": "some", "value": _read_node(r, depth + 1)}
    if tag == _T_LIST:
        return {"type": "list", "value": [_read_node(r, depth + 1) for _ in range(r.u32())]}
    if tag == _T_TUPLE:
        fields: dict[str, Any] = {}
        for _ in range(r.u32()):
            name = r.take(r.u8()).decode("ascii")
            fields[name] = _read_node(r, depth + 1)
        return {"type": "tuple", "value": fields}
    if tag == _T_STRING_ASCII:
        return {"type": "string-ascii", "value": r.take(r.u32()).decode("ascii")}
    if tag == _T_STRING_UTF8:
        return {"type": "string-utf8", "value": r.take(r.u32()).decode("utf-8")}
    raise ValueError(f"unknown Clarity type id 0x{tag:02x}")


def deserialize(value: bytes | str) -> dict[str, Any]:
    """Decode a serialised Clarity value (bytes or ``0x`` hex) into typed nodes."""

    if isinstance(value, str):
        value = bytes.fromhex(value.removeprefix("0x"))
    reader = _Reader(value)
    node = _read_node(reader)
    if not reader.exhausted:
        raise ValueError("trailing bytes after Clarity value")
    return node


# ---------------------------------------------------------------------------
# Shape-tolerant normalisation of (optional (tuple ...)) results
# ---------------------------------------------------------------------------

# Decoding layers disagree on how an optional is tagged. Observed variants:
#   {"type": "none"} | {"type": "optionalNone"} | {"type": "optional", "value": None}
#   {"type": "(optional none)", "value": None}
#   {"type": "some" | "optionalSome" | "optional" | "(optional ...)", "value": <payload>}
# and the payload reaches the tuple fields through zero, one or two generic
# wrappers ({"type": "tuple", "value": {...}}, {"data": {...}}, ...).
_NONE_TAGS = frozenset({"none", "optionalNone", "(optional none)"})
_SOME_TAGS = frozenset({"some", "optionalSome", "optional"})
_WRAPPER_KEYS = frozenset({"type", "value", "data", "success"})
_MAX_WRAPPERS = 2
_TEXT_TYPES = ("string-utf8", "string-ascii", "(string-utf8", "(string-ascii")


@dataclass(frozen=True, slots=True)
class OptionalTuple:
    """Canonical ``Option<Tuple>``: ``fields is None`` means the value is absent."""

    fields: Mapping[str, Any] | None

    @property
    def present(self) -> bool:
        return self.fields is not None

    def text(self, name: str) -> str | None:
        """Return the text label stored under ``name`` or ``None``.

        Accepts a typed node (``{"type": "string-utf8", "value": ...}``) or the
        bare decoded string.
        """

        if self.fields is None:
            return None
        node = self.fields.get(name)
        if isinstance(node, str):
            return node
        if isinstance(node, Mapping):
            tag = node.get("type")
            val = node.get("value")
            if isinstance(val, str) and (tag is None or str(tag).startswith(_TEXT_TYPES)):
                return val
        return None


ABSENT = OptionalTuple(None)


def _is_wrapper(node: Mapping[str, Any]) -> bool:
    inner = node.get("value", node.get("data"))
    return isinstance(inner, Mapping) and set(node) <= _WRAPPER_KEYS


def _tuple_fields(payload: Any) -> Mapping[str, Any]:
    node = payload
    for _ in range(_MAX_WRAPPERS + 1):
        if not isinstance(node, Mapping):
            raise DecodeAmbiguity(f"expected a mapping, got {type(node).__name__}")
        if not _is_wrapper(node):
            if set(node) & {"type"}:
                raise DecodeAmbiguity(f"typed node is not a tuple: {node.get('type')!r}")
            return node
        inner = node.get("value")
        node = inner if isinstance(inner, Mapping) else node.get("data")
    raise DecodeAmbiguity("tuple fields nested deeper than expected")


def normalize_optional_tuple(raw: Any) -> OptionalTuple:
    """Map any known decoding of ``(optional (tuple ...))`` onto :class:`OptionalTuple`.

    Raises :class:`~stacks_history.errors.DecodeAmbiguity` when the shape is not
    recognised; callers on read paths turn that into "no value".
    """

    if not isinstance(raw, Mapping):
        raise DecodeAmbiguity(f"expected a mapping, got {type(raw).__name__}")
    tag = raw.get("type")
    if not isinstance(tag, str) or not tag:
        raise DecodeAmbiguity("missing type tag")

    is_optional = tag in _SOME_TAGS or tag.startswith("(optional")
    if tag in _NONE_TAGS or (is_optional and raw.get("value") is None):
        return ABSENT
    if is_optional:
        return OptionalTuple(_tuple_fields(raw["value"]))
    if tag == "tuple" or tag.startswith("(tuple"):
        # Some layers drop the optional wrapper once a value is present.
        return OptionalTuple(_tuple_fields(raw))
    raise DecodeAmbiguity(f"unrecognised result tag {tag!r}")


__all__ = [
    "C32_ALPHABET",
    "MAINNET_VERSIONS",
    "TESTNET_VERSIONS",
    "c32_encode",
    "c32_decode",
    "decode_address",
    "encode_address",
    "serialize_principal",
    "serialize_buffer",
    "serialize_string_utf8",
    "to_hex",
    "MAX_VALUE_DEPTH",
    "deserialize",
    "OptionalTuple",
    "ABSENT",
    "normalize_optional_tuple",
]
