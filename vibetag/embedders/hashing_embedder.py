# Path: vibetag/embedders/hashing_embedder.py
# Purpose: Provide a deterministic, dependency-light embedding provider.
# Layer: vibetag/embedders.
# Details: Hashes text and projects pixels with a seeded random matrix; stands in for a CLIP service.

from __future__ import annotations

import hashlib
from typing import Optional

import numpy as np
from PIL import Image

from .base import Embedder


class HashingEmbedder(Embedder):
    """Stub implementation that mimics a CLIP provider with lightweight operations.

    Identical strings always map to identical unit vectors, and images share a
    fixed random projection so that visually similar images land close together.
    """

    def __init__(self, model_name: str = "clip-ViT-L/14", dim: int = 512, image_size: int = 32, seed: int = 0) -> None:
        self.model_name = model_name
        self.dim = dim
        self.image_size = image_size
        self.seed = seed
        self.name = "hashing"
        self._projection: Optional[np.ndarray] = None

    def embed_image(self, image: Image.Image) -> np.ndarray:
        """Project resized, centered pixel values onto ``dim`` axes."""

        resized = image.convert("RGB").resize((self.image_size, self.image_size))
        pixels = np.asarray(resized, dtype=np.float32).flatten() / 255.0 - 0.5
        return self._normalize(pixels @ self._get_projection(pixels.size))

    def embed_text(self, text: str) -> np.ndarray:
        """Generate a deterministic text embedding based on hashing."""

        hash_bytes = hashlib.sha256(text.encode("utf-8")).digest()
        expanded = np.frombuffer(hash_bytes * (self.dim // len(hash_bytes) + 1), dtype=np.uint8)
        rng = np.random.default_rng(int.from_bytes(hash_bytes[:8], "little"))
        # Hash bytes repeat every 32 values; random signs break the periodicity.
        signs = rng.choice(np.array([-1.0, 1.0], dtype=np.float32), size=self.dim)
        vector = (expanded[: self.dim].astype(np.float32) - 127.5) * signs
        return self._normalize(vector)

    def _get_projection(self, size: int) -> np.ndarray:
        if self._projection is None or self._projection.shape[0] != size:
            rng = np.random.default_rng(self.seed)
            self._projection = rng.standard_normal((size, self.dim)).astype(np.float32)
        return self._projection
