# Path: vibetag/embedders/__init__.py
# Purpose: Package initializer for embedder implementations and interfaces.
# Layer: vibetag/embedders.
# Details: Exposes the provider interface, the hashing reference provider, and concept embedding helpers.

from .base import Embedder
from .concept_embeddings import build_concept_embedding, concept_prompts
from .hashing_embedder import HashingEmbedder

__all__ = ["Embedder", "HashingEmbedder", "build_concept_embedding", "concept_prompts"]
