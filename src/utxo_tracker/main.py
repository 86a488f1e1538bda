"""utxo-tracker command line.

    # Classify addresses or scriptPubKey hex
    utxo-tracker classify <address-or-script>...

    # Normalize a wallet or network CSV export and print the records as JSON
    utxo-tracker normalize <csv> [wallet]

    # Build spend trees from one or more exports (wallet name = file name
    # up to the last "-"); --exact links through provider vin data,
    # --prices adds daily BTC/USD values
    utxo-tracker trees [--exact] [--prices] <csv>...

    # Run the average-cost calculator over a JSON list of transactions
    utxo-tracker cost-basis <json>

Settings come from UTXOTRACKER_* environment variables and, when
UTXOTRACKER_CONFIG_PATH is set, a YAML file.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any

from utxo_tracker.config.settings import AppConfig
from utxo_tracker.errors.tracker_errors import TrackerError

logger = logging.getLogger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _cmd_classify(values: list[str]) -> None:
    from utxo_tracker.btc.address import classify_address

    _print_json([dataclasses.asdict(classify_address(v)) for v in values])


def _cmd_normalize(path: str, wallet: str | None) -> None:
    from utxo_tracker.ingest.csv_normalizer import load_csv_file

    records = load_csv_file(path, wallet=wallet)
    _print_json([r.to_dict() for r in records])


def _cmd_trees(config: AppConfig, paths: list[str], *, exact: bool, with_prices: bool) -> None:
    from utxo_tracker.cache.client import CacheClient
    from utxo_tracker.chain.service import BlockchainService
    from utxo_tracker.engine.service import TrackerService
    from utxo_tracker.engine.summary import summarize_trees
    from utxo_tracker.engine.tracer import TraceOptions
    from utxo_tracker.ingest.csv_normalizer import load_csv_file
    from utxo_tracker.metrics.collector import TrackerMetrics
    from utxo_tracker.pricing.service import PriceService
    from utxo_tracker.store.memory import MemoryTransactionStore

    store = MemoryTransactionStore()
    for path in paths:
        store.add_transactions(load_csv_file(path))

    options = dataclasses.replace(
        TraceOptions.from_config(config.tracer), use_real_blockchain_data=exact
    )
    metrics = TrackerMetrics() if config.metrics.enabled else None

    async def _run() -> list[dict[str, Any]]:
        cache = CacheClient(config.cache)
        await cache.connect()
        chain = BlockchainService(config.provider, cache=cache, store=store, metrics=metrics)
        prices = PriceService(
            config.price,
            cache=cache,
            batch_size=config.provider.batch_size,
            batch_delay=config.provider.batch_delay,
        )
        await chain.connect()
        await prices.connect()
        try:
            service = TrackerService(
                config,
                store=store,
                blockchain=chain,
                prices=prices if with_prices else None,
                metrics=metrics,
            )
            trees = await service.build_spend_trees(options=options)
            return [s.to_dict() for s in summarize_trees(trees)]
        finally:
            await prices.close()
            await chain.close()
            await cache.close()

    _print_json(asyncio.run(_run()))


def _cmd_cost_basis(path: str) -> None:
    from utxo_tracker.engine.cost_basis import compute_cost_basis, summarize_cost_basis
    from utxo_tracker.engine.models import Transaction

    items = json.loads(Path(path).read_text(encoding="utf-8"))
    computed = compute_cost_basis(Transaction.from_dict(item) for item in items)
    _print_json(
        {
            "transactions": [t.to_dict() for t in computed],
            "summary": summarize_cost_basis(computed).to_dict(),
        }
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print(__doc__)
        sys.exit(1)

    config = AppConfig()
    logging.basicConfig(
        level=config.log_level.value,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cmd = args[0].lower()
    rest = args[1:]
    try:
        if cmd == "classify":
            if not rest:
                print("Usage: utxo-tracker classify <address-or-script>...")
                sys.exit(1)
            _cmd_classify(rest)
        elif cmd == "normalize":
            if not rest:
                print("Usage: utxo-tracker normalize <csv> [wallet]")
                sys.exit(1)
            _cmd_normalize(rest[0], rest[1] if len(rest) > 1 else None)
        elif cmd == "trees":
            flags = {a for a in rest if a.startswith("--")}
            paths = [a for a in rest if not a.startswith("--")]
            if not paths:
                print("Usage: utxo-tracker trees [--exact] [--prices] <csv>...")
                sys.exit(1)
            _cmd_trees(
                config, paths, exact="--exact" in flags, with_prices="--prices" in flags
            )
        elif cmd == "cost-basis":
            if not rest:
                print("Usage: utxo-tracker cost-basis <json>")
                sys.exit(1)
            _cmd_cost_basis(rest[0])
        else:
            print(f"Unknown command: {cmd}")
            print(__doc__)
            sys.exit(1)
    except TrackerError as exc:
        print(f"error: {exc.message} ({exc.code})", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
