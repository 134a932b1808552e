# Path: vibetag/tagging/selection.py
# Purpose: Choose a bounded tag set from concepts ranked by cosine score.
# Layer: vibetag/tagging.
# Details: Threshold plus relative-drop guard, a coverage floor, and a last-resort fallback.

from __future__ import annotations

from typing import Iterable, List, Sequence

from config.settings import TaggingSettings
from vibetag.models.domain import TagScore, TagSet


def rank_scores(concept_ids: Sequence[str], scores: Iterable[float]) -> List[TagScore]:
    """Pair ids with scores and sort by score descending, then concept id ascending."""

    ranked = [TagScore(concept_id=cid, score=float(score)) for cid, score in zip(concept_ids, scores)]
    ranked.sort(key=lambda item: (-item.score, item.concept_id))
    return ranked


def relative_drop(reference: float, score: float) -> float:
    """Fractional drop from ``reference`` to ``score``.

    A non-positive reference has no meaningful ratio: no drop if the score
    holds level or rises, otherwise an infinite one.
    """

    if reference > 0:
        return (reference - score) / reference
    return 0.0 if score >= reference else float("inf")


def select_tags(ranked: Sequence[TagScore], settings: TaggingSettings) -> TagSet:
    """Select tags from ``ranked`` (best first) and return them as an ordered mapping.

    1. Only scores at or above ``min_score`` are considered at first.
    2. They are accepted in order, up to ``max_k``, until the drop from the
       previous accepted score exceeds ``min_score_drop_pct`` (or the drop from
       the top score exceeds ``max_total_drop_pct`` when set). While fewer than
       ``min_tags_per_image`` are chosen the guard is ignored.
    3. If still short of ``min_tags_per_image``, fill from the full ranking
       regardless of ``min_score``.
    4. If nothing was chosen at all, keep the top ``fallback_k``.

    Ranking uses raw cosines; the returned scores are clipped to [0, 1], so
    tags filled from below zero are stored as 0.0.
    """

    above = [item for item in ranked if item.score >= settings.min_score]
    chosen: List[TagScore] = []
    top_score = above[0].score if above else 0.0
    prev_score = top_score

    for current in above:
        if len(chosen) >= settings.max_k:
            break
        if chosen and _should_stop(prev_score, top_score, current.score, settings):
            if len(chosen) >= settings.min_tags_per_image:
                break
        chosen.append(current)
        prev_score = current.score

    if len(chosen) < settings.min_tags_per_image:
        keep = {item.concept_id for item in chosen}
        for candidate in ranked:
            if len(chosen) >= settings.min_tags_per_image:
                break
            if candidate.concept_id not in keep:
                chosen.append(candidate)
                keep.add(candidate.concept_id)

    if not chosen:
        chosen = list(ranked[: settings.fallback_k])

    chosen.sort(key=lambda item: (-item.score, item.concept_id))
    return {item.concept_id: clamp_score(item.score) for item in chosen}


def clamp_score(score: float) -> float:
    """Clip a cosine into the stored tag score range [0, 1]."""

    return min(1.0, max(0.0, score))


def _should_stop(prev_score: float, top_score: float, score: float, settings: TaggingSettings) -> bool:
    if relative_drop(prev_score, score) > settings.min_score_drop_pct:
        return True
    if settings.max_total_drop_pct is not None and relative_drop(top_score, score) > settings.max_total_drop_pct:
        return True
    return False
