"""Locking script classification from scriptPubKey hex.

Recognises the standard output templates by their byte prefix/suffix:
- P2PKH: ``OP_DUP OP_HASH160 <20> ... OP_EQUALVERIFY OP_CHECKSIG``
- P2SH: ``OP_HASH160 <20> ... OP_EQUAL``
- P2WPKH / P2WSH: witness v0 with a 20 or 32 byte program
- bare multisig: ``OP_1|OP_2|OP_3 <33-byte pubkey> ...``

This is a best-effort heuristic. Scripts are never executed or validated.
"""

from __future__ import annotations

import enum
import string

# ---------------------------------------------------------------------------
# Opcodes
# ---------------------------------------------------------------------------


class OpCode(int, enum.Enum):
    """Opcodes that appear in the recognised templates."""

    OP_0 = 0x00
    OP_PUSH20 = 0x14
    OP_PUSH32 = 0x20
    OP_PUSH33 = 0x21
    OP_1 = 0x51
    OP_2 = 0x52
    OP_3 = 0x53
    OP_DUP = 0x76
    OP_EQUAL = 0x87
    OP_EQUALVERIFY = 0x88
    OP_HASH160 = 0xA9
    OP_CHECKSIG = 0xAC


def _hex(*ops: OpCode) -> str:
    return bytes(ops).hex()


# ---------------------------------------------------------------------------
# Script Type
# ---------------------------------------------------------------------------


class ScriptType(enum.StrEnum):
    """Known script types."""

    P2PKH = "P2PKH"
    P2SH = "P2SH"
    P2WPKH = "P2WPKH"
    P2WSH = "P2WSH"
    MULTISIG = "MultiSig"
    UNKNOWN = "unknown"


_P2PKH_PREFIX = _hex(OpCode.OP_DUP, OpCode.OP_HASH160, OpCode.OP_PUSH20)
_P2PKH_SUFFIX = _hex(OpCode.OP_EQUALVERIFY, OpCode.OP_CHECKSIG)
_P2SH_PREFIX = _hex(OpCode.OP_HASH160, OpCode.OP_PUSH20)
_P2SH_SUFFIX = _hex(OpCode.OP_EQUAL)
_P2WPKH_PREFIX = _hex(OpCode.OP_0, OpCode.OP_PUSH20)
_P2WSH_PREFIX = _hex(OpCode.OP_0, OpCode.OP_PUSH32)
_MULTISIG_PREFIXES = tuple(
    _hex(m, OpCode.OP_PUSH33) for m in (OpCode.OP_1, OpCode.OP_2, OpCode.OP_3)
)

_HEX_DIGITS = frozenset(string.hexdigits)


def is_script_hex(value: str) -> bool:
    """Check whether *value* looks like a hex-encoded script (even length, hex digits only)."""
    return len(value) >= 2 and len(value) % 2 == 0 and all(c in _HEX_DIGITS for c in value)


def detect_script_type(script_hex: str) -> ScriptType:
    """Detect the type of a locking script given as hex.

    Rules are checked in priority order; anything unmatched is UNKNOWN.

    Returns:
        The detected :class:`ScriptType`.
    """
    script = script_hex.lower()
    if script.startswith(_P2PKH_PREFIX) and script.endswith(_P2PKH_SUFFIX):
        return ScriptType.P2PKH
    if script.startswith(_P2SH_PREFIX) and script.endswith(_P2SH_SUFFIX):
        return ScriptType.P2SH
    if script.startswith(_P2WPKH_PREFIX):
        return ScriptType.P2WPKH
    if script.startswith(_P2WSH_PREFIX):
        return ScriptType.P2WSH
    if script.startswith(_MULTISIG_PREFIXES):
        return ScriptType.MULTISIG
    return ScriptType.UNKNOWN
