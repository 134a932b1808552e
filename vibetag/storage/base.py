# Path: vibetag/storage/base.py
# Purpose: Define storage protocols for per-image tag scores and hub statistics.
# Layer: vibetag/storage.
# Details: Jobs only replace derived fields; these adapters are the single write path for them.

from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from vibetag.models.domain import HubStats


class TagStore(Protocol):
    """Adapter persisting ``(image_id, concept_id) -> score`` rows."""

    def get_tags(self, image_id: str) -> Dict[str, float]:
        """Return the stored tags of an image, highest score first."""

    def upsert_tag(self, image_id: str, concept_id: str, score: float) -> None:
        """Insert a tag or overwrite its score."""

    def delete_tag(self, image_id: str, concept_id: str) -> None:
        """Remove a tag if present."""


class HubStatsStore(Protocol):
    """Adapter persisting hub statistics; absence of a row means "not a hub"."""

    def get(self, image_id: str) -> Optional[HubStats]:
        """Return stored hub statistics for an image."""

    def replace(self, image_id: str, stats: HubStats) -> None:
        """Overwrite the hub statistics of an image."""

    def clear(self, image_id: str) -> None:
        """Remove hub statistics for an image."""

    def image_ids(self) -> List[str]:
        """Return ids of all images that currently carry hub statistics."""
