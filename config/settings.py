# Path: config/settings.py
# Purpose: Provide typed application configuration models.
# Layer: config.
# Details: Centralizes settings for embedders, tagging thresholds, hub detection, and job scheduling.

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field


class EmbedderSettings(BaseModel):
    """Settings describing which embedder implementation to use and how to load it."""

    name: str = Field(default="hashing", description="Identifier of the embedder implementation.")
    model_name: str = Field(default="clip-ViT-L/14", description="Model variant reported by the embedder.")
    dim: int = Field(default=512, gt=0, description="Expected embedding dimensionality.")
    image_size: int = Field(default=32, gt=0, description="Side length images are resized to before pooling.")


class TaggingSettings(BaseModel):
    """Thresholds controlling how many concepts an image is tagged with."""

    min_score: float = Field(default=0.20, ge=-1.0, le=1.0, description="Cosine floor for accepting a tag.")
    max_k: int = Field(default=40, gt=0, description="Maximum number of tags per image.")
    min_score_drop_pct: float = Field(
        default=0.10,
        ge=0.0,
        description="Stop accepting tags once the relative drop from the previous score exceeds this fraction.",
    )
    max_total_drop_pct: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Optional stop condition on the relative drop from the top score. Disabled when unset.",
    )
    min_tags_per_image: int = Field(default=8, ge=0, description="Coverage floor; filled below min_score if needed.")
    fallback_k: int = Field(default=6, ge=0, description="Absolute last resort when nothing else was chosen.")
    max_workers: int = Field(default=4, gt=0, description="Thread pool size used when tagging many images.")


class HubDetectionSettings(BaseModel):
    """Settings for the hub image detection scan."""

    top_n: int = Field(default=40, gt=0, description="Window of top results counted per query.")
    threshold_multiplier: float = Field(
        default=1.5, gt=0.0, description="Multiple of the uniform-random expectation that marks a hub."
    )
    batch_size: int = Field(default=10, gt=0, description="Queries embedded per provider call.")
    batch_timeout_seconds: float = Field(default=60.0, gt=0.0, description="Deadline for a single embedding batch.")
    max_in_flight: int = Field(default=2, gt=0, description="Embedding batches requested ahead of scoring.")
    max_tags_per_query: int = Field(default=10, ge=0, description="Tag labels combined with each historical query.")
    max_expansions_per_query: int = Field(
        default=3, ge=0, description="Expansions combined with tag labels for each historical query."
    )


class SchedulerSettings(BaseModel):
    """Debounce and throttle intervals for background hub detection."""

    debounce_seconds: float = Field(default=300.0, ge=0.0, description="Quiet period before a scheduled run fires.")
    min_interval_seconds: float = Field(
        default=600.0, ge=0.0, description="Minimum spacing between the starts of two full scans."
    )


class AppSettings(BaseModel):
    """Top-level application settings shared across jobs and scripts."""

    catalog_path: Path = Field(default=Path("storage/concepts.json"), description="Concept catalog seed file.")
    index_path: Path = Field(default=Path("storage/indexes/images"), description="Image embedding index prefix.")
    database_path: Path = Field(default=Path("storage/db/vibetag.sqlite3"), description="Tag and hub stats database.")
    embedder: EmbedderSettings = Field(default_factory=EmbedderSettings)
    tagging: TaggingSettings = Field(default_factory=TaggingSettings)
    hubs: HubDetectionSettings = Field(default_factory=HubDetectionSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    log_level: str = Field(default="INFO", description="Verbosity level for application logs.")

    @classmethod
    def from_env(cls, prefix: str = "VIBETAG_", environ: Optional[Mapping[str, str]] = None) -> "AppSettings":
        """Instantiate settings from environment variables when available.

        Nested fields use a double underscore, e.g. ``VIBETAG_TAGGING__MIN_SCORE=0.3``.
        """

        environ = os.environ if environ is None else environ
        payload: Dict[str, Any] = {}
        for key, value in environ.items():
            if not key.startswith(prefix):
                continue
            parts = key[len(prefix):].lower().split("__")
            target = payload
            for part in parts[:-1]:
                target = target.setdefault(part, {})
            target[parts[-1]] = value
        return cls.model_validate(payload)

    @classmethod
    def from_file(cls, path: Path | str) -> "AppSettings":
        """Load settings from a JSON file."""

        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(payload)


__all__ = [
    "AppSettings",
    "EmbedderSettings",
    "HubDetectionSettings",
    "SchedulerSettings",
    "TaggingSettings",
]
