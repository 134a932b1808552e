# Path: vibetag/catalog/catalog.py
# Purpose: Load, query, and update the concept catalog used for tagging and opposite checks.
# Layer: vibetag/catalog.
# Details: The catalog is the single writer for concept relations; lookup structures are caches rebuilt from it.

from __future__ import annotations

import json
import logging
import re
import threading
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import numpy as np

from vibetag.models.domain import Concept
from .opposites import OppositeIndex

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def concept_id_for_label(label: str) -> str:
    """Convert a concept label to its canonical id (lowercase, hyphenated)."""

    return _NON_ALNUM.sub("-", label.strip().lower()).strip("-")


class ConceptCatalog:
    """Authoritative store of concepts.

    All writes go through :meth:`upsert` and :meth:`set_opposites`, which hold
    the catalog lock and drop the cached embedding matrix and opposite index.
    Readers always get a consistent snapshot of those caches.
    """

    def __init__(
        self,
        concepts: Iterable[Concept] = (),
        dim: Optional[int] = None,
        path: Optional[Path] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._concepts: Dict[str, Concept] = {}
        self._dim = dim
        self._path = path
        self._matrix_cache: Optional[Tuple[List[str], np.ndarray]] = None
        self._opposite_cache: Optional[OppositeIndex] = None
        for concept in concepts:
            if concept.id in self._concepts:
                raise ValueError(f"Duplicate concept id {concept.id!r}")
            self._concepts[concept.id] = concept

    @classmethod
    def from_file(cls, path: Path | str, dim: Optional[int] = None) -> "ConceptCatalog":
        """Load concepts from a JSON list of concept objects."""

        cfg_path = Path(path)
        payload = json.loads(cfg_path.read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            payload = payload.get("concepts") or []
        concepts = [Concept.from_dict(item) for item in payload]
        logger.info(f"Loaded {len(concepts)} concepts from {cfg_path}")
        return cls(concepts, dim=dim, path=cfg_path)

    def save(self, path: Path | str | None = None) -> None:
        """Persist the catalog back to its JSON file."""

        target = Path(path) if path is not None else self._path
        if target is None:
            raise ValueError("No path given and catalog was not loaded from a file.")
        with self._lock:
            payload = [concept.to_dict() for concept in self._concepts.values()]
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.info(f"Saved {len(payload)} concepts to {target}")

    # Read access
    def __len__(self) -> int:
        return len(self._concepts)

    def __contains__(self, concept_id: object) -> bool:
        return concept_id in self._concepts

    def __iter__(self) -> Iterator[Concept]:
        return iter(self.concepts())

    def concepts(self) -> List[Concept]:
        """Return all concepts in catalog order."""

        with self._lock:
            return list(self._concepts.values())

    def get(self, concept_id: str) -> Optional[Concept]:
        return self._concepts.get(concept_id)

    @property
    def dim(self) -> Optional[int]:
        """Embedding dimension, inferred from the first embedded concept when not configured."""

        if self._dim is not None:
            return self._dim
        with self._lock:
            for concept in self._concepts.values():
                if concept.embedding is not None and concept.embedding.size > 0:
                    return int(concept.embedding.shape[-1])
        return None

    def embedding_matrix(self) -> Tuple[List[str], np.ndarray]:
        """Return ``(ids, matrix)`` for every concept with a usable embedding.

        Concepts without an embedding, or with one of the wrong dimension, are
        left out of scoring.
        """

        with self._lock:
            if self._matrix_cache is None:
                self._matrix_cache = self._build_matrix()
            return self._matrix_cache

    def _build_matrix(self) -> Tuple[List[str], np.ndarray]:
        dim = self.dim
        ids: List[str] = []
        rows: List[np.ndarray] = []
        skipped: Counter = Counter()
        for concept in self._concepts.values():
            if concept.embedding is None or concept.embedding.size == 0:
                skipped["missing"] += 1
                continue
            if concept.embedding.shape[-1] != dim:
                skipped["dimension"] += 1
                continue
            ids.append(concept.id)
            rows.append(concept.embedding.astype(np.float32))

        if skipped:
            logger.warning(
                f"Excluded {sum(skipped.values())} concepts from scoring "
                f"(missing embedding: {skipped['missing']}, wrong dimension: {skipped['dimension']})"
            )
        if not rows:
            return [], np.empty((0, dim or 0), dtype=np.float32)
        return ids, np.vstack(rows)

    def opposite_index(self) -> OppositeIndex:
        """Return the cached opposite lookup built from the catalog's ``opposites`` fields."""

        with self._lock:
            if self._opposite_cache is None:
                self._opposite_cache = OppositeIndex(
                    {concept.id: concept.opposites for concept in self._concepts.values()}
                )
            return self._opposite_cache

    def resolve(self, query: str) -> Optional[str]:
        """Map a query string to a concept id by id, label, or synonym."""

        normalized = query.strip().lower()
        if not normalized:
            return None
        candidate_id = concept_id_for_label(normalized)
        with self._lock:
            concepts = list(self._concepts.values())
        for concept in concepts:
            if concept.id.lower() in (normalized, candidate_id):
                return concept.id
        for concept in concepts:
            if concept.label.strip().lower() == normalized:
                return concept.id
        for concept in concepts:
            if any(synonym.strip().lower() == normalized for synonym in concept.synonyms):
                return concept.id
        return None

    # Writes
    def upsert(self, concept: Concept) -> None:
        """Insert or replace a concept."""

        with self._lock:
            self._concepts[concept.id] = concept
            self._invalidate()

    def set_opposites(self, concept_id: str, opposite_ids: Iterable[str]) -> frozenset:
        """Replace the ``opposites`` field of one concept.

        Ids are lowercased and self-references are dropped. Returns the stored set.
        """

        with self._lock:
            concept = self._concepts.get(concept_id)
            if concept is None:
                raise KeyError(f"Concept {concept_id} not found")
            own_id = concept_id.lower()
            cleaned = {str(opp).strip().lower() for opp in opposite_ids}
            cleaned = {opp for opp in cleaned if opp and opp != own_id}
            concept.opposites = set(cleaned)
            self._invalidate()
            return frozenset(cleaned)

    def _invalidate(self) -> None:
        self._matrix_cache = None
        self._opposite_cache = None
