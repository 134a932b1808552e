# Path: scripts/embed_concepts.py
# Purpose: CLI tool to fill in missing concept embeddings.
# Layer: scripts.
# Details: Embeds label, synonyms, and related terms with the configured provider and saves the catalog.

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tqdm import tqdm

from config import AppSettings
from vibetag.catalog import ConceptCatalog
from vibetag.embedders import HashingEmbedder, build_concept_embedding
from vibetag.logging_setup import setup_logging


def main() -> None:
    """Embed concepts that have no embedding yet (or all of them with --all)."""

    parser = argparse.ArgumentParser(description="Compute concept embeddings for the catalog")
    parser.add_argument("--catalog", type=Path, default=None, help="Concept catalog JSON file")
    parser.add_argument("--all", action="store_true", help="Recompute embeddings that already exist")
    args = parser.parse_args()

    settings = AppSettings.from_env()
    setup_logging(settings.log_level)

    catalog = ConceptCatalog.from_file(args.catalog or settings.catalog_path, dim=settings.embedder.dim)
    embedder = HashingEmbedder(model_name=settings.embedder.model_name, dim=settings.embedder.dim)

    targets = [c for c in catalog.concepts() if args.all or c.embedding is None]
    for concept in tqdm(targets, desc="Embedding concepts", unit="concept"):
        concept.embedding = build_concept_embedding(embedder, concept.label, concept.synonyms, concept.related)
        catalog.upsert(concept)

    catalog.save()
    print(f"Embedded {len(targets)} concepts into {args.catalog or settings.catalog_path}")


if __name__ == "__main__":
    main()
