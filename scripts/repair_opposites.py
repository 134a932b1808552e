# Path: scripts/repair_opposites.py
# Purpose: CLI tool to make the catalog's opposite relation symmetric.
# Layer: scripts.
# Details: Reports asymmetric pairs and, unless --dry-run is given, writes the repaired catalog back.

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import AppSettings
from vibetag.catalog import ConceptCatalog, repair_opposite_symmetry
from vibetag.logging_setup import setup_logging


def main() -> None:
    """Repair the opposite relation of the concept catalog."""

    parser = argparse.ArgumentParser(description="Repair asymmetric concept opposites")
    parser.add_argument("--catalog", type=Path, default=None, help="Concept catalog JSON file")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing them")
    args = parser.parse_args()

    settings = AppSettings.from_env()
    setup_logging(settings.log_level)

    catalog = ConceptCatalog.from_file(args.catalog or settings.catalog_path)
    report = repair_opposite_symmetry(catalog, dry_run=args.dry_run)

    for source, target in report.added_links:
        print(f"+ {source} <-> {target}")
    for concept_id in report.removed_self_links:
        print(f"- {concept_id} listed itself as an opposite")
    for concept_id, missing in report.dangling:
        print(f"? {concept_id} -> {missing} (not in catalog)")

    if report.changed and not args.dry_run:
        catalog.save()
        print("Catalog updated.")
    else:
        print("No changes written.")


if __name__ == "__main__":
    main()
