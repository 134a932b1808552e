# Path: vibetag/embedders/concept_embeddings.py
# Purpose: Build concept embeddings from a label and its synonym and related terms.
# Layer: vibetag/embedders.
# Details: One prompt per term, averaged and L2-normalized, so every concept is embedded the same way.

from __future__ import annotations

from typing import Iterable, List

import numpy as np

from vibetag.errors import EmbeddingProviderError
from .base import Embedder

PROMPT_TEMPLATE = "website UI with a {term} visual style"


def concept_prompts(label: str, synonyms: Iterable[str] = (), related: Iterable[str] = ()) -> List[str]:
    """Return the prompts embedded for a concept, label first."""

    terms = [label, *synonyms, *related]
    return [PROMPT_TEMPLATE.format(term=term.strip()) for term in terms if term and term.strip()]


def build_concept_embedding(
    embedder: Embedder,
    label: str,
    synonyms: Iterable[str] = (),
    related: Iterable[str] = (),
) -> np.ndarray:
    """Embed every prompt for a concept and return the normalized mean vector."""

    prompts = concept_prompts(label, synonyms, related)
    if not prompts:
        raise ValueError("Concept label must not be empty.")

    vectors = embedder.embed_texts(prompts)
    if vectors.shape[0] == 0:
        raise EmbeddingProviderError(f"Failed to generate embeddings for concept {label!r}")
    return Embedder._normalize(vectors.mean(axis=0))
