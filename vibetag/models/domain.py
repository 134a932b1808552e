# Path: vibetag/models/domain.py
# Purpose: Define domain models shared across tagging, catalog, and hub detection workflows.
# Layer: vibetag/models.
# Details: Lightweight dataclasses keep jobs, stores, and scripts speaking the same types.

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Set

import numpy as np

# Ordered mapping of concept id to score, highest score first.
TagSet = Dict[str, float]


@dataclass
class ImageRecord:
    """An image known to the corpus together with its derived fields."""

    id: str
    embedding: Optional[np.ndarray] = None
    path: Optional[Path] = None
    tags: Dict[str, float] = field(default_factory=dict)
    hub_stats: Optional["HubStats"] = None


@dataclass
class Concept:
    """A named, embeddable semantic tag and its relations to other concepts."""

    id: str
    label: str
    embedding: Optional[np.ndarray] = None
    synonyms: List[str] = field(default_factory=list)
    related: List[str] = field(default_factory=list)
    opposites: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "label": self.label,
            "embedding": None if self.embedding is None else [float(x) for x in self.embedding],
            "synonyms": list(self.synonyms),
            "related": list(self.related),
            "opposites": sorted(self.opposites),
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "Concept":
        raw_embedding = payload.get("embedding")
        embedding = None
        if raw_embedding:
            embedding = np.asarray(raw_embedding, dtype=np.float32)
        return cls(
            id=str(payload["id"]),
            label=str(payload.get("label", payload["id"])),
            embedding=embedding,
            synonyms=[str(s) for s in payload.get("synonyms") or []],
            related=[str(r) for r in payload.get("related") or []],
            opposites={str(o) for o in payload.get("opposites") or []},
        )


@dataclass(frozen=True)
class TagScore:
    """Cosine score of one concept against one image."""

    concept_id: str
    score: float


@dataclass(frozen=True)
class HubStats:
    """Hub statistics stored for an image that was flagged as a hub."""

    hub_count: int
    hub_score: float
    avg_similarity: float
    avg_margin: float


@dataclass(frozen=True)
class InteractionRecord:
    """A historical search interaction: ``query`` surfaced ``image_id``."""

    image_id: str
    query: str


@dataclass(frozen=True)
class QueryExpansion:
    """A recorded expansion of a search term into a longer query."""

    term: str
    expansion: str


@dataclass(frozen=True)
class HubDetectionRequest:
    """Work item for the hub detection job. ``image_ids=None`` means a full scan."""

    image_ids: Optional[FrozenSet[str]] = None

    @property
    def is_full_scan(self) -> bool:
        return self.image_ids is None

    def merge(self, other: "HubDetectionRequest") -> "HubDetectionRequest":
        """Coalesce two requests; a full scan absorbs any incremental one."""

        if self.image_ids is None or other.image_ids is None:
            return HubDetectionRequest(image_ids=None)
        return HubDetectionRequest(image_ids=self.image_ids | other.image_ids)
