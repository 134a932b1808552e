# Path: vibetag/catalog/opposites.py
# Purpose: Answer "are these two concepts opposites?" and repair asymmetric opposite relations.
# Layer: vibetag/catalog.
# Details: The stored relation may be one-sided, so every check looks in both directions.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, List, Mapping, Tuple

if TYPE_CHECKING:
    from .catalog import ConceptCatalog

logger = logging.getLogger(__name__)


class OppositeIndex:
    """Read-only, case-insensitive view of the opposite relation."""

    def __init__(self, relation: Mapping[str, Iterable[str]]) -> None:
        self._opposites: Dict[str, FrozenSet[str]] = {}
        for concept_id, opposites in relation.items():
            key = concept_id.lower()
            merged = set(self._opposites.get(key, frozenset()))
            merged.update(opp.lower() for opp in opposites)
            self._opposites[key] = frozenset(merged)

    def opposites_of(self, concept_id: str) -> FrozenSet[str]:
        """Return the ids stored as opposites of ``concept_id`` (one direction only)."""

        return self._opposites.get(concept_id.lower(), frozenset())

    def is_opposite(self, query_concept_id: str, tag_concept_id: str) -> bool:
        """Return True if either concept lists the other as an opposite."""

        query_id = query_concept_id.lower()
        tag_id = tag_concept_id.lower()
        return tag_id in self.opposites_of(query_id) or query_id in self.opposites_of(tag_id)

    def conflicting_tags(self, query_concept_id: str, tag_ids: Iterable[str]) -> List[str]:
        """Return the tags that contradict the query concept, in input order."""

        return [tag_id for tag_id in tag_ids if self.is_opposite(query_concept_id, tag_id)]

    def has_opposite_tags(self, query_concept_id: str, tag_ids: Iterable[str]) -> bool:
        """Return True if any of an image's tags contradicts the query concept."""

        return any(self.is_opposite(query_concept_id, tag_id) for tag_id in tag_ids)

    def __len__(self) -> int:
        return len(self._opposites)


@dataclass
class OppositeRepairReport:
    """Changes made (or proposed) by :func:`repair_opposite_symmetry`."""

    added_links: List[Tuple[str, str]] = field(default_factory=list)
    removed_self_links: List[str] = field(default_factory=list)
    dangling: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added_links or self.removed_self_links)


def find_asymmetric_pairs(catalog: "ConceptCatalog") -> List[Tuple[str, str]]:
    """Return ``(a, b)`` pairs where ``b`` is listed under ``a`` but not the reverse.

    Only pairs where both concepts exist in the catalog are reported.
    """

    ids = {concept.id.lower(): concept for concept in catalog.concepts()}
    pairs: List[Tuple[str, str]] = []
    for key, concept in sorted(ids.items()):
        for opp in sorted(o.lower() for o in concept.opposites):
            other = ids.get(opp)
            if other is None or opp == key:
                continue
            if key not in {o.lower() for o in other.opposites}:
                pairs.append((concept.id, other.id))
    return pairs


def repair_opposite_symmetry(catalog: "ConceptCatalog", dry_run: bool = False) -> OppositeRepairReport:
    """Make the stored opposite relation symmetric.

    Adds missing reverse links, drops self-references, and reports opposites
    that name concepts missing from the catalog. Every change is logged.
    """

    report = OppositeRepairReport()
    concepts = catalog.concepts()
    by_key = {concept.id.lower(): concept for concept in concepts}
    additions: Dict[str, set] = {}

    for concept in concepts:
        own_key = concept.id.lower()
        for opp in sorted(o.lower() for o in concept.opposites):
            if opp == own_key:
                report.removed_self_links.append(concept.id)
                logger.info(f"Dropping self-opposite on {concept.id!r}")
                continue
            other = by_key.get(opp)
            if other is None:
                report.dangling.append((concept.id, opp))
                logger.warning(f"Opposite {opp!r} of {concept.id!r} is not in the catalog")
                continue
            if own_key not in {o.lower() for o in other.opposites}:
                report.added_links.append((other.id, concept.id))
                additions.setdefault(other.id, set()).add(own_key)
                logger.info(f"Adding reverse opposite {other.id!r} -> {concept.id!r}")

    if dry_run:
        return report

    touched = set(additions) | set(report.removed_self_links)
    for concept_id in sorted(touched):
        concept = catalog.get(concept_id)
        if concept is None:
            continue
        catalog.set_opposites(concept_id, set(concept.opposites) | additions.get(concept_id, set()))

    logger.info(
        f"Opposite repair: {len(report.added_links)} reverse links added, "
        f"{len(report.removed_self_links)} self links removed, {len(report.dangling)} dangling"
    )
    return report
