# Path: vibetag/vector_store/__init__.py
# Purpose: Package initializer for vector store interfaces and implementations.
# Layer: vibetag/vector_store.
# Details: Exposes the base vector store contract, the numpy-backed store, and the top-n ranking helper.

from .base import VectorStore
from .memory_store import MemoryVectorStore, rank_top_n

__all__ = ["VectorStore", "MemoryVectorStore", "rank_top_n"]
