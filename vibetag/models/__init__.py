# Path: vibetag/models/__init__.py
# Purpose: Package initializer for domain model definitions.
# Layer: vibetag/models.
# Details: Exposes dataclasses used across embedding, catalog, tagging, and hub detection layers.

from .domain import (
    Concept,
    HubDetectionRequest,
    HubStats,
    ImageRecord,
    InteractionRecord,
    QueryExpansion,
    TagScore,
    TagSet,
)

__all__ = [
    "Concept",
    "HubDetectionRequest",
    "HubStats",
    "ImageRecord",
    "InteractionRecord",
    "QueryExpansion",
    "TagScore",
    "TagSet",
]
