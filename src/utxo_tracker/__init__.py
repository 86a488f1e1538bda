"""utxo-tracker: UTXO relationship reconstruction for Bitcoin wallet histories."""

__version__ = "0.1.0"
