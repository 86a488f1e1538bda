"""Address classification — single-sig vs multi-sig by address prefix or script.

The classification is a heuristic: a ``3...`` (P2SH) address is *commonly* a
multisig wallet but nothing guarantees it, and Taproot key-path spends look
like single keys on chain. ``classify_address`` is total: any string yields a
result and UNKNOWN is a valid answer.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from utxo_tracker.btc.script import ScriptType, detect_script_type, is_script_hex


class AddressKind(enum.StrEnum):
    """Signing arrangement inferred for an address."""

    SINGLE_SIG = "single-sig"
    MULTI_SIG = "multi-sig"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AddressInfo:
    """Derived address metadata. Recomputed on demand, never persisted."""

    address: str
    type: AddressKind
    script_type: str
    description: str
    is_input: bool = False
    is_output: bool = False


# Ordered: bc1p must be tested before any shorter prefix could match.
_ADDRESS_RULES: tuple[tuple[str, AddressKind, str], ...] = (
    ("bc1p", AddressKind.MULTI_SIG, "Taproot"),
    ("bc1q", AddressKind.SINGLE_SIG, "Native SegWit"),
    ("3", AddressKind.MULTI_SIG, "P2SH"),
    ("1", AddressKind.SINGLE_SIG, "Legacy"),
)

_SCRIPT_KINDS: dict[ScriptType, AddressKind] = {
    ScriptType.P2PKH: AddressKind.SINGLE_SIG,
    ScriptType.P2SH: AddressKind.MULTI_SIG,
    ScriptType.P2WPKH: AddressKind.SINGLE_SIG,
    ScriptType.P2WSH: AddressKind.MULTI_SIG,
    ScriptType.MULTISIG: AddressKind.MULTI_SIG,
}


def _unknown(value: str) -> AddressInfo:
    return AddressInfo(
        address=value,
        type=AddressKind.UNKNOWN,
        script_type=ScriptType.UNKNOWN.value,
        description="Unknown address type",
    )


def classify_address_string(address: str) -> AddressInfo | None:
    """Classify by address prefix. Returns None when no prefix rule matches."""
    for prefix, kind, label in _ADDRESS_RULES:
        if address.startswith(prefix):
            return AddressInfo(
                address=address,
                type=kind,
                script_type=label,
                description=f"{label} {kind.value} address",
            )
    return None


def classify_script(script_hex: str) -> AddressInfo:
    """Classify a scriptPubKey given as hex."""
    script_type = detect_script_type(script_hex)
    kind = _SCRIPT_KINDS.get(script_type)
    if kind is None:
        return _unknown(script_hex)
    return AddressInfo(
        address=script_hex,
        type=kind,
        script_type=script_type.value,
        description=f"{script_type.value} {kind.value} script",
    )


def classify_address(value: str, *, is_input: bool = False, is_output: bool = False) -> AddressInfo:
    """Classify an address string or a scriptPubKey hex string.

    Address prefixes are checked first, then script byte patterns; anything
    else is UNKNOWN.

    Args:
        value: Address (``bc1p...``, ``bc1q...``, ``3...``, ``1...``) or script hex.
        is_input: Mark the address as seen on an input.
        is_output: Mark the address as seen on an output.
    """
    info = classify_address_string(value)
    if info is None:
        info = classify_script(value) if is_script_hex(value) else _unknown(value)
    if is_input or is_output:
        info = AddressInfo(
            address=info.address,
            type=info.type,
            script_type=info.script_type,
            description=info.description,
            is_input=is_input,
            is_output=is_output,
        )
    return info
