import os
import sys
import time
from typing import Callable, Dict, Iterable, Sequence, Tuple

import numpy as np
import pytest

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.settings import TaggingSettings
from vibetag.catalog import ConceptCatalog
from vibetag.embedders.base import Embedder
from vibetag.models import Concept
from vibetag.vector_store import MemoryVectorStore


def unit(vector: Iterable[float]) -> np.ndarray:
    arr = np.asarray(list(vector), dtype=np.float32)
    return arr / np.linalg.norm(arr)


class DictEmbedder(Embedder):
    """Text embedder backed by a lookup table, with hooks for failures and stalls."""

    name = "dict"

    def __init__(
        self,
        vectors: Dict[str, np.ndarray],
        dim: int,
        fail_on: Sequence[str] = (),
        stall_on: Sequence[str] = (),
        stall_seconds: float = 1.0,
    ) -> None:
        self.vectors = vectors
        self.dim = dim
        self.fail_on = set(fail_on)
        self.stall_on = set(stall_on)
        self.stall_seconds = stall_seconds
        self.calls = 0

    def embed_image(self, image):
        raise NotImplementedError

    def embed_text(self, text: str) -> np.ndarray:
        return self.vectors[text]

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        self.calls += 1
        if self.fail_on.intersection(texts):
            raise ConnectionError("provider unavailable")
        if self.stall_on.intersection(texts):
            time.sleep(self.stall_seconds)
        return super().embed_texts(texts)


@pytest.fixture
def catalog_factory() -> Callable[[Dict[str, float]], Tuple[ConceptCatalog, np.ndarray]]:
    """Build a catalog whose concepts score exactly the given cosines against the returned image."""

    def build(scores: Dict[str, float]) -> Tuple[ConceptCatalog, np.ndarray]:
        dim = len(scores) + 1
        image = np.zeros(dim, dtype=np.float64)
        image[0] = 1.0
        concepts = []
        for position, (concept_id, score) in enumerate(scores.items(), start=1):
            vector = np.zeros(dim, dtype=np.float64)
            vector[0] = score
            vector[position] = np.sqrt(max(0.0, 1.0 - score * score))
            concepts.append(Concept(id=concept_id, label=concept_id.replace("-", " "), embedding=vector.astype(np.float32)))
        return ConceptCatalog(concepts, dim=dim), image.astype(np.float32)

    return build


@pytest.fixture
def tagging_settings() -> TaggingSettings:
    return TaggingSettings(min_score=0.20, max_k=40, min_score_drop_pct=0.30, min_tags_per_image=8, fallback_k=6)


@pytest.fixture
def hub_corpus() -> Tuple[MemoryVectorStore, DictEmbedder, list]:
    """Ten one-hot images and ten queries; img0 sits in the top 2 of every query.

    Query ``qk`` (k >= 1) points mostly at ``imgk`` with a strong pull towards
    ``img0``; ``q0`` is ``img0`` itself, whose runner-up is ``img1`` by index
    order.
    """

    dim = 10
    store = MemoryVectorStore(dim=dim)
    ids = [f"img{k}" for k in range(dim)]
    store.add(ids, np.eye(dim, dtype=np.float32))

    vectors = {"q0": np.eye(dim, dtype=np.float32)[0]}
    for k in range(1, dim):
        raw = np.zeros(dim)
        raw[0] = 0.6
        raw[k] = 0.8
        vectors[f"q{k}"] = unit(raw)
    workload = [f"q{k}" for k in range(dim)]
    return store, DictEmbedder(vectors, dim=dim), workload
