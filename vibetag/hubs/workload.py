# Path: vibetag/hubs/workload.py
# Purpose: Build the query workloads used to probe the corpus for hub images.
# Layer: vibetag/hubs.
# Details: Baseline workloads come from concept labels plus style phrases; extension workloads from search history.

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from vibetag.catalog.catalog import ConceptCatalog
from vibetag.models.domain import Concept, InteractionRecord, QueryExpansion
from vibetag.storage.base import TagStore

logger = logging.getLogger(__name__)

SYNTHETIC_QUERIES = (
    "cozy ui",
    "fun website",
    "cinematic hero",
    "minimal design",
    "brutalist interface",
    "dark mode",
    "light theme",
    "colorful design",
    "monochrome",
    "gradient background",
    "bold typography",
    "geometric shapes",
    "organic shapes",
    "flat design",
    "skeuomorphic",
    "modern website",
    "retro design",
    "futuristic ui",
    "playful interface",
    "serious design",
    "elegant website",
    "bold website",
    "subtle design",
    "high contrast",
    "low contrast",
    "warm colors",
    "cool colors",
    "vibrant palette",
    "muted palette",
    "clean layout",
    "busy layout",
    "spacious design",
    "compact design",
)


def normalize_query(query: str) -> str:
    """Lowercase and collapse whitespace."""

    return " ".join(query.strip().lower().split())


def dedupe_queries(queries: Iterable[str]) -> List[str]:
    """Normalize queries, drop empties and duplicates, keep first-seen order."""

    seen = set()
    result: List[str] = []
    for query in queries:
        normalized = normalize_query(query)
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


def build_baseline_workload(concepts: Iterable[Concept], synthetic: Sequence[str] = SYNTHETIC_QUERIES) -> List[str]:
    """Return every concept label followed by the synthetic style phrases."""

    return dedupe_queries([concept.label for concept in concepts] + list(synthetic))


def build_extension_workload(
    interactions: Iterable[InteractionRecord],
    expansions: Iterable[QueryExpansion],
    tag_labels: Mapping[str, Sequence[str]],
    image_ids: Optional[Iterable[str]] = None,
    max_tags_per_query: int = 10,
    max_expansions_per_query: int = 3,
) -> List[str]:
    """Derive a workload from the queries that actually surfaced the target images.

    For every recorded query of a target image the workload holds the query,
    its recorded expansions, "<query> <tag>" for the image's top tags, and
    "<expansion> <tag>" for the first few expansions. The per-query bounds keep
    the cross product small.
    """

    targets = None if image_ids is None else set(image_ids)

    queries_by_image: Dict[str, List[str]] = defaultdict(list)
    for record in interactions:
        if targets is not None and record.image_id not in targets:
            continue
        query = normalize_query(record.query)
        if query and query not in queries_by_image[record.image_id]:
            queries_by_image[record.image_id].append(query)

    expansions_by_term: Dict[str, List[str]] = defaultdict(list)
    for item in expansions:
        term = normalize_query(item.term)
        expansion = normalize_query(item.expansion)
        if term and expansion and expansion not in expansions_by_term[term]:
            expansions_by_term[term].append(expansion)

    workload: List[str] = []
    for image_id in sorted(queries_by_image):
        labels = [normalize_query(label) for label in tag_labels.get(image_id, ())][:max_tags_per_query]
        for query in queries_by_image[image_id]:
            query_expansions = expansions_by_term.get(query, [])
            workload.append(query)
            workload.extend(query_expansions)
            for label in labels:
                workload.append(f"{query} {label}")
                for expansion in query_expansions[:max_expansions_per_query]:
                    workload.append(f"{expansion} {label}")

    return dedupe_queries(workload)


class BaselineWorkloadSource:
    """Workload of concept labels and style phrases; identical for full and incremental runs."""

    def __init__(self, catalog: ConceptCatalog, synthetic: Sequence[str] = SYNTHETIC_QUERIES) -> None:
        self.catalog = catalog
        self.synthetic = tuple(synthetic)

    def __call__(self, image_ids: Optional[FrozenSet[str]] = None) -> List[str]:
        return build_baseline_workload(self.catalog.concepts(), self.synthetic)


@dataclass
class QueryHistory:
    """Recorded search interactions and query expansions."""

    interactions: List[InteractionRecord] = field(default_factory=list)
    expansions: List[QueryExpansion] = field(default_factory=list)


class ExtensionWorkloadSource:
    """Workload derived from search history and the target images' own tags."""

    def __init__(
        self,
        history: QueryHistory,
        catalog: ConceptCatalog,
        tag_store: TagStore,
        max_tags_per_query: int = 10,
        max_expansions_per_query: int = 3,
    ) -> None:
        self.history = history
        self.catalog = catalog
        self.tag_store = tag_store
        self.max_tags_per_query = max_tags_per_query
        self.max_expansions_per_query = max_expansions_per_query

    def __call__(self, image_ids: Optional[FrozenSet[str]] = None) -> List[str]:
        targets = image_ids
        if targets is None:
            targets = frozenset(record.image_id for record in self.history.interactions)

        tag_labels: Dict[str, List[str]] = {}
        for image_id in targets:
            labels = []
            for concept_id in self.tag_store.get_tags(image_id):
                concept = self.catalog.get(concept_id)
                labels.append(concept.label if concept is not None else concept_id)
            tag_labels[image_id] = labels

        workload = build_extension_workload(
            self.history.interactions,
            self.history.expansions,
            tag_labels,
            image_ids=targets,
            max_tags_per_query=self.max_tags_per_query,
            max_expansions_per_query=self.max_expansions_per_query,
        )
        logger.info(f"Built extension workload of {len(workload)} queries for {len(targets)} image(s)")
        return workload
