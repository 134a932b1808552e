# Path: vibetag/vector_store/memory_store.py
# Purpose: Provide an in-memory cosine vector store over the image corpus.
# Layer: vibetag/vector_store.
# Details: Implements add/search/save/load with numpy; vectors are expected to be L2-normalized.

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np

from .base import VectorStore

logger = logging.getLogger(__name__)


def rank_top_n(scores: np.ndarray, n: int) -> np.ndarray:
    """Return indices of the ``n`` highest scores, best first.

    Equal scores keep their index order, so rankings are reproducible.
    """

    if n <= 0 or scores.size == 0:
        return np.empty(0, dtype=np.int64)
    order = np.argsort(-scores, kind="stable")
    return order[:n]


class MemoryVectorStore(VectorStore):
    """Minimal vector store holding the whole corpus in one numpy matrix.

    Cosine similarity of normalized vectors is a dot product, so search and the
    hub scan both score with a single matrix multiplication.
    """

    def __init__(self, dim: int, name: str = "memory") -> None:
        self.dim = dim
        self.name = name
        self._ids: List[str] = []
        self._positions: Dict[str, int] = {}
        self._vectors: np.ndarray = np.empty((0, dim), dtype=np.float32)
        self._payloads: Dict[str, Dict] = {}

    def add(self, ids: List[str], vectors: np.ndarray, payloads: Optional[List[Dict]] = None) -> None:
        """Add vectors to the store, replacing any existing vector with the same id."""

        vectors = np.asarray(vectors, dtype=np.float32)
        if vectors.ndim != 2 or vectors.shape[1] != self.dim:
            raise ValueError(f"Vector dimensionality {vectors.shape[-1]} does not match store dimension {self.dim}.")
        if len(ids) != vectors.shape[0]:
            raise ValueError("Number of vectors must match number of ids.")

        payloads = payloads or [{} for _ in ids]
        if len(payloads) != len(ids):
            raise ValueError("Payloads length must match ids length.")

        new_rows: List[np.ndarray] = []
        for item_id, vector, payload in zip(ids, vectors, payloads):
            position = self._positions.get(item_id)
            if position is not None:
                self._vectors[position] = vector
            else:
                self._positions[item_id] = len(self._ids) + len(new_rows)
                new_rows.append(vector)
                self._ids.append(item_id)
            self._payloads[item_id] = payload

        if new_rows:
            self._vectors = np.vstack([self._vectors, np.vstack(new_rows)])

    def search(self, query: np.ndarray, k: int) -> List[Tuple[str, float]]:
        """Return the k most similar vectors by cosine similarity."""

        if not self._ids:
            return []
        if query.shape[0] != self.dim:
            raise ValueError(f"Query dimensionality {query.shape[0]} does not match store dimension {self.dim}.")

        scores = self._vectors @ query.astype(np.float32)
        return [(self._ids[idx], float(scores[idx])) for idx in rank_top_n(scores, k)]

    def ids(self) -> List[str]:
        return list(self._ids)

    def as_matrix(self) -> np.ndarray:
        return self._vectors

    def get_vector(self, id: str) -> Optional[np.ndarray]:
        position = self._positions.get(id)
        if position is None:
            return None
        return self._vectors[position]

    def get_payload(self, id: str) -> Optional[Dict]:
        """Retrieve payload previously associated with the given id."""

        return self._payloads.get(id)

    def save(self, path: str) -> None:
        """Persist vectors and payloads to disk as lightweight JSON + numpy arrays."""

        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        np.save(target.with_suffix(".npy"), self._vectors)
        target.with_suffix(".json").write_text(json.dumps({"ids": self._ids, "payloads": self._payloads}))
        logger.info(f"Saved {len(self._ids)} vectors to {target}")

    def load(self, path: str) -> None:
        """Load vectors and payloads previously saved by :meth:`save`."""

        target = Path(path)
        vector_path = target.with_suffix(".npy")
        metadata_path = target.with_suffix(".json")
        if not vector_path.exists() or not metadata_path.exists():
            raise FileNotFoundError(f"Missing vector store files for {path}.")

        vectors = np.load(vector_path).astype(np.float32)
        metadata = json.loads(metadata_path.read_text())
        ids = [str(item_id) for item_id in metadata.get("ids", [])]
        if vectors.shape[0] != len(ids):
            raise ValueError(f"Index {path} has {vectors.shape[0]} vectors but {len(ids)} ids.")
        if vectors.shape[0] and vectors.shape[1] != self.dim:
            raise ValueError(f"Index {path} has dimension {vectors.shape[1]}, expected {self.dim}.")

        self._vectors = vectors.reshape(len(ids), self.dim)
        self._ids = ids
        self._positions = {item_id: position for position, item_id in enumerate(ids)}
        self._payloads = {str(k): v for k, v in metadata.get("payloads", {}).items()}
        logger.info(f"Loaded {len(ids)} vectors from {target}")
