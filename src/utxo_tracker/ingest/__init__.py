"""CSV ingestion."""

from utxo_tracker.ingest.csv_normalizer import normalize_csv

__all__ = ["normalize_csv"]
