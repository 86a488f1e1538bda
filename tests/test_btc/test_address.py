"""Tests for address classification — btc/address.py."""

from __future__ import annotations

import pytest

from utxo_tracker.btc.address import (
    AddressKind,
    classify_address,
    classify_address_string,
    classify_script,
)

_P2PKH = "76a914" + "ab" * 20 + "88ac"
_P2SH = "a914" + "cd" * 20 + "87"
_P2WPKH = "0014" + "ef" * 20
_P2WSH = "0020" + "01" * 32
_BARE_MULTISIG = "5221" + "02" * 33 + "21" + "03" * 33 + "52ae"


# ---------------------------------------------------------------------------
# Address prefixes
# ---------------------------------------------------------------------------


class TestAddressPrefixes:
    @pytest.mark.parametrize(
        ("address", "kind", "label"),
        [
            ("bc1p" + "x" * 58, AddressKind.MULTI_SIG, "Taproot"),
            ("bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq", AddressKind.SINGLE_SIG, "Native SegWit"),
            ("3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy", AddressKind.MULTI_SIG, "P2SH"),
            ("1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa", AddressKind.SINGLE_SIG, "Legacy"),
        ],
    )
    def test_known_prefixes(self, address: str, kind: AddressKind, label: str) -> None:
        info = classify_address(address)
        assert info.type == kind
        assert info.script_type == label
        assert info.address == address

    def test_bc1p_wins_over_bc1q_rule(self) -> None:
        assert classify_address("bc1p").type == AddressKind.MULTI_SIG

    @pytest.mark.parametrize(
        "value", ["", "bc1", "tb1qxyz", "mxVFsFW8Nv5o", "2N3oefVeg6", "xyz", "zz"]
    )
    def test_unknown_prefixes(self, value: str) -> None:
        assert classify_address(value).type == AddressKind.UNKNOWN

    def test_address_string_returns_none_without_rule(self) -> None:
        assert classify_address_string("tb1qxyz") is None


# ---------------------------------------------------------------------------
# Script hex
# ---------------------------------------------------------------------------


class TestScriptHex:
    @pytest.mark.parametrize(
        ("script", "kind", "label"),
        [
            (_P2PKH, AddressKind.SINGLE_SIG, "P2PKH"),
            (_P2SH, AddressKind.MULTI_SIG, "P2SH"),
            (_P2WPKH, AddressKind.SINGLE_SIG, "P2WPKH"),
            (_P2WSH, AddressKind.MULTI_SIG, "P2WSH"),
            (_BARE_MULTISIG, AddressKind.MULTI_SIG, "MultiSig"),
        ],
    )
    def test_templates(self, script: str, kind: AddressKind, label: str) -> None:
        info = classify_address(script)
        assert info.type == kind
        assert info.script_type == label

    def test_uppercase_hex(self) -> None:
        assert classify_script(_P2WPKH.upper()).script_type == "P2WPKH"

    def test_p2pkh_prefix_without_suffix_is_unknown(self) -> None:
        assert classify_script("76a914" + "ab" * 20).type == AddressKind.UNKNOWN

    def test_op_return_is_unknown(self) -> None:
        assert classify_address("6a0568656c6c6f").type == AddressKind.UNKNOWN

    def test_odd_length_hex_is_unknown(self) -> None:
        assert classify_address("00145").type == AddressKind.UNKNOWN


# ---------------------------------------------------------------------------
# Totality
# ---------------------------------------------------------------------------


class TestTotality:
    @pytest.mark.parametrize(
        "value",
        ["", " ", "\x00", "é", "3", "1", "bc1p", "ffff", "76a91488ac", "not an address"],
    )
    def test_never_raises(self, value: str) -> None:
        info = classify_address(value)
        assert info.type in set(AddressKind)

    def test_prefix_rule_beats_script_rule(self) -> None:
        # "1..." is also valid hex but the address rule applies first
        assert classify_address("14ab").script_type == "Legacy"

    def test_input_output_flags(self) -> None:
        info = classify_address("bc1qxyz", is_input=True)
        assert info.is_input is True
        assert info.is_output is False
        assert info.type == AddressKind.SINGLE_SIG
