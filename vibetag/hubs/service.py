# Path: vibetag/hubs/service.py
# Purpose: Run hub detection end to end and persist the outcome.
# Layer: vibetag/hubs.
# Details: Builds the workload, detects hubs, then replaces or clears hub stats so status is never sticky.

from __future__ import annotations

import logging
from typing import Callable, FrozenSet, List, Optional

from vibetag.models.domain import HubDetectionRequest
from vibetag.storage.base import HubStatsStore
from vibetag.vector_store.base import VectorStore
from .cancellation import CancellationToken
from .detector import HubDetectionResult, HubDetector

logger = logging.getLogger(__name__)

WorkloadSource = Callable[[Optional[FrozenSet[str]]], List[str]]


class HubDetectionService:
    """Glue between the detector, the image corpus, and the hub stats store."""

    def __init__(
        self,
        detector: HubDetector,
        corpus: VectorStore,
        stats_store: HubStatsStore,
        workload_source: WorkloadSource,
    ) -> None:
        self.detector = detector
        self.corpus = corpus
        self.stats_store = stats_store
        self.workload_source = workload_source

    def run(self, request: HubDetectionRequest, token: Optional[CancellationToken] = None) -> HubDetectionResult:
        """Detect hubs for ``request`` and write the results."""

        workload = self.workload_source(request.image_ids)
        logger.info(f"Built {len(workload)} workload queries")
        result = self.detector.detect(workload, self.corpus, image_ids=request.image_ids, token=token)
        self.write(result)
        return result

    def __call__(self, request: HubDetectionRequest, token: Optional[CancellationToken] = None) -> HubDetectionResult:
        return self.run(request, token)

    def write(self, result: HubDetectionResult) -> None:
        """Replace stats of hubs and clear everything else the run covered.

        A full scan also clears stored stats for images that are no longer in
        the corpus.
        """

        written = cleared = 0
        for image_id, observation in result.observations.items():
            if observation.is_hub:
                self.stats_store.replace(image_id, observation.to_stats())
                written += 1
            else:
                self.stats_store.clear(image_id)
                cleared += 1

        if result.full_scan:
            for image_id in self.stats_store.image_ids():
                if image_id not in result.observations:
                    self.stats_store.clear(image_id)
                    cleared += 1

        logger.info(f"Wrote hub stats for {written} image(s), cleared {cleared}")
