# Path: vibetag/embedders/base.py
# Purpose: Define the Embedder interface for image and text embeddings.
# Layer: vibetag/embedders.
# Details: Provides abstract methods so tagging and hub detection can treat the provider as a black box.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np
from PIL import Image


class Embedder(ABC):
    """Abstract base class for all embedding providers.

    Implementations must return L2-normalized float32 vectors of length ``dim``
    and be deterministic for identical input.
    """

    name: str
    dim: int

    @abstractmethod
    def embed_image(self, image: Image.Image) -> np.ndarray:
        """Return an embedding for a given image."""

    @abstractmethod
    def embed_text(self, text: str) -> np.ndarray:
        """Return an embedding for a given text query."""

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        """Return a ``(len(texts), dim)`` matrix of text embeddings.

        Providers backed by a remote service should override this with a single
        batched call.
        """

        if not texts:
            return np.empty((0, self.dim), dtype=np.float32)
        return np.vstack([self.embed_text(text) for text in texts]).astype(np.float32)

    @staticmethod
    def _normalize(vector: np.ndarray) -> np.ndarray:
        """Normalize embedding vectors to unit length to simplify similarity comparisons."""

        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector.astype(np.float32)
        return (vector / norm).astype(np.float32)
