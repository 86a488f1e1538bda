"""Tests for script template detection — btc/script.py."""

from __future__ import annotations

from utxo_tracker.btc.script import OpCode, ScriptType, detect_script_type, is_script_hex


class TestOpCodes:
    def test_template_bytes(self) -> None:
        assert OpCode.OP_DUP == 0x76
        assert OpCode.OP_HASH160 == 0xA9
        assert OpCode.OP_CHECKSIG == 0xAC


class TestDetectScriptType:
    def test_p2pkh(self) -> None:
        assert detect_script_type("76a914" + "00" * 20 + "88ac") == ScriptType.P2PKH

    def test_p2sh(self) -> None:
        assert detect_script_type("a914" + "00" * 20 + "87") == ScriptType.P2SH

    def test_p2wpkh(self) -> None:
        assert detect_script_type("0014" + "11" * 20) == ScriptType.P2WPKH

    def test_p2wsh(self) -> None:
        assert detect_script_type("0020" + "22" * 32) == ScriptType.P2WSH

    def test_bare_multisig_m_values(self) -> None:
        for m in ("51", "52", "53"):
            assert detect_script_type(m + "21" + "02" * 33) == ScriptType.MULTISIG

    def test_four_of_n_not_recognised(self) -> None:
        assert detect_script_type("5421" + "02" * 33) == ScriptType.UNKNOWN

    def test_p2sh_without_op_equal(self) -> None:
        assert detect_script_type("a914" + "00" * 20 + "88") == ScriptType.UNKNOWN

    def test_empty(self) -> None:
        assert detect_script_type("") == ScriptType.UNKNOWN


class TestIsScriptHex:
    def test_valid(self) -> None:
        assert is_script_hex("0014ab") is True

    def test_odd_length(self) -> None:
        assert is_script_hex("001") is False

    def test_non_hex(self) -> None:
        assert is_script_hex("bc1qxyz0") is False

    def test_too_short(self) -> None:
        assert is_script_hex("") is False
