# Path: scripts/tag_images.py
# Purpose: CLI tool to (re)tag every indexed image with catalog concepts.
# Layer: scripts.
# Details: Loads the concept catalog and the image embedding index, then reconciles tags into SQLite.

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
from vibetag.logging_setup import setup_logging
from vibetag.models import ImageRecord
from vibetag.storage import SqliteDatabase, SqliteTagStore
from vibetag.tagging import TaggingEngine
from vibetag.vector_store import MemoryVectorStore


def main() -> None:
    """Tag all images in the index."""

    parser = argparse.ArgumentParser(description="Tag indexed images with catalog concepts")
    parser.add_argument("--config", type=Path, default=None, help="Optional JSON settings file")
    parser.add_argument("--image-id", action="append", default=None, help="Only tag these image ids")
    parser.add_argument("--workers", type=int, default=None, help="Number of tagging threads")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    settings = AppSettings.from_file(args.config) if args.config else AppSettings.from_env()
    setup_logging(settings.log_level, verbose=args.verbose)

    catalog = ConceptCatalog.from_file(settings.catalog_path, dim=settings.embedder.dim)
    index = MemoryVectorStore(dim=settings.embedder.dim)
    index.load(str(settings.index_path))
    embedder = HashingEmbedder(
        model_name=settings.embedder.model_name,
        dim=settings.embedder.dim,
        image_size=settings.embedder.image_size,
    )

    ids = args.image_id or index.ids()
    images = []
    for image_id in ids:
        payload = index.get_payload(image_id) or {}
        path = payload.get("path")
        images.append(ImageRecord(id=image_id, embedding=index.get_vector(image_id), path=Path(path) if path else None))

    with SqliteDatabase(settings.database_path) as database:
        engine = TaggingEngine(catalog, SqliteTagStore(database), embedder=embedder, settings=settings.tagging)
        summary = engine.tag_all(images, max_workers=args.workers)

    print(f"Tagged {len(summary.tagged)} images ({len(summary.failed)} failed) into {settings.database_path}")
    for image_id, error in sorted(summary.failed.items()):
        print(f"  failed {image_id}: {error}")


if __name__ == "__main__":
    main()
