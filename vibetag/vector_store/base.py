# Path: vibetag/vector_store/base.py
# Purpose: Define the VectorStore interface for indexing and searching image embeddings.
# Layer: vibetag/vector_store.
# Details: Provides abstract methods for persistence and for exposing the full corpus matrix to scans.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

import numpy as np


class VectorStore(ABC):
    """Abstract base class for pluggable vector store backends."""

    name: str
    dim: int

    @abstractmethod
    def add(self, ids: List[str], vectors: np.ndarray, payloads: Optional[List[Dict]] = None) -> None:
        """Add or replace vectors and optional payloads in the index."""

    @abstractmethod
    def search(self, query: np.ndarray, k: int) -> List[Tuple[str, float]]:
        """Search for the most similar vectors and return (id, cosine) pairs."""

    @abstractmethod
    def ids(self) -> List[str]:
        """Return identifiers in index order."""

    @abstractmethod
    def as_matrix(self) -> np.ndarray:
        """Return the ``(len(ids), dim)`` embedding matrix in index order."""

    @abstractmethod
    def get_vector(self, id: str) -> Optional[np.ndarray]:
        """Return the stored vector for the given identifier if available."""

    @abstractmethod
    def save(self, path: str) -> None:
        """Persist the index to disk."""

    @abstractmethod
    def load(self, path: str) -> None:
        """Load a serialized index from disk."""

    def __len__(self) -> int:
        return len(self.ids())
