# Path: vibetag/tagging/__init__.py
# Purpose: Package initializer for concept tagging.
# Layer: vibetag/tagging.
# Details: Exposes the tag selection rules and the engine that applies them to stored images.

from .engine import ReconcileResult, TaggingEngine, TaggingSummary
from .selection import clamp_score, rank_scores, relative_drop, select_tags

__all__ = ["ReconcileResult", "TaggingEngine", "TaggingSummary", "clamp_score", "rank_scores", "relative_drop", "select_tags"]
