# Path: scripts/detect_hubs.py
# Purpose: CLI tool to run hub detection over the image index.
# Layer: scripts.
# Details: Runs a full or incremental scan with the baseline workload and prints the threshold report.

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import AppSettings
from vibetag.catalog import ConceptCatalog
from vibetag.embedders import HashingEmbedder
from vibetag.hubs import BaselineWorkloadSource, HubDetectionService, HubDetector
from vibetag.logging_setup import setup_logging
from vibetag.models import HubDetectionRequest
from vibetag.storage import SqliteDatabase, SqliteHubStatsStore
from vibetag.vector_store import MemoryVectorStore


def main() -> None:
    """Detect hub images and store their statistics."""

    parser = argparse.ArgumentParser(description="Detect hub images that dominate search results")
    parser.add_argument("--config", type=Path, default=None, help="Optional JSON settings file")
    parser.add_argument("--image-id", action="append", default=None, help="Incremental scan for these image ids")
    parser.add_argument("--top-n", type=int, default=None, help="Override the top-N window")
    parser.add_argument("--multiplier", type=float, default=None, help="Override the threshold multiplier")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    settings = AppSettings.from_file(args.config) if args.config else AppSettings.from_env()
    setup_logging(settings.log_level, verbose=args.verbose)

    hub_settings = settings.hubs
    if args.top_n is not None:
        hub_settings = hub_settings.model_copy(update={"top_n": args.top_n})
    if args.multiplier is not None:
        hub_settings = hub_settings.model_copy(update={"threshold_multiplier": args.multiplier})

    catalog = ConceptCatalog.from_file(settings.catalog_path, dim=settings.embedder.dim)
    index = MemoryVectorStore(dim=settings.embedder.dim)
    index.load(str(settings.index_path))
    embedder = HashingEmbedder(model_name=settings.embedder.model_name, dim=settings.embedder.dim)

    request = HubDetectionRequest(image_ids=frozenset(args.image_id) if args.image_id else None)
    with SqliteDatabase(settings.database_path) as database:
        service = HubDetectionService(
            detector=HubDetector(embedder, hub_settings),
            corpus=index,
            stats_store=SqliteHubStatsStore(database),
            workload_source=BaselineWorkloadSource(catalog),
        )
        result = service.run(request)

    print(
        f"Queries: {result.processed_queries}/{result.workload_size} "
        f"({result.failed_batches} failed batches), images: {result.corpus_size}"
    )
    print(f"Expected hub score: {result.expected_score:.5f}, threshold: {result.threshold:.5f}")
    shown = args.image_id or sorted(result.hubs)
    for image_id in shown:
        if image_id in result.observations:
            print(f"  {result.describe(image_id)}")


if __name__ == "__main__":
    main()
