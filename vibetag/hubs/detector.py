# Path: vibetag/hubs/detector.py
# Purpose: Detect hub images that dominate the top results of a large query workload.
# Layer: vibetag/hubs.
# Details: Embeds the workload in bounded batches, ranks the full corpus per query, and flags statistical outliers.

from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from config.settings import HubDetectionSettings
from vibetag.embedders.base import Embedder
from vibetag.errors import EmbeddingProviderError
from vibetag.models.domain import HubStats
from vibetag.vector_store.base import VectorStore
from vibetag.vector_store.memory_store import rank_top_n
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def hub_threshold(corpus_size: int, top_n: int, threshold_multiplier: float) -> Tuple[float, float]:
    """Return ``(expected, threshold)`` hub scores.

    Under a uniform-random ranking an image lands in a query's top ``top_n``
    with probability ``top_n / corpus_size``.
    """

    if corpus_size <= 0:
        return 0.0, 0.0
    expected = top_n / corpus_size
    return expected, expected * threshold_multiplier


@dataclass(frozen=True)
class HubObservation:
    """Accumulated appearance statistics for one image over one workload."""

    image_id: str
    hub_count: int
    hub_score: float
    avg_similarity: float
    avg_margin: float
    is_hub: bool

    def to_stats(self) -> HubStats:
        return HubStats(
            hub_count=self.hub_count,
            hub_score=self.hub_score,
            avg_similarity=self.avg_similarity,
            avg_margin=self.avg_margin,
        )


def evaluate_observation(
    image_id: str,
    hub_count: int,
    score_sum: float,
    margin_sum: float,
    workload_size: int,
    threshold: float,
) -> HubObservation:
    """Turn raw counters into an observation and compare it with ``threshold``."""

    hub_score = hub_count / workload_size if workload_size > 0 else 0.0
    return HubObservation(
        image_id=image_id,
        hub_count=int(hub_count),
        hub_score=hub_score,
        avg_similarity=score_sum / hub_count if hub_count > 0 else 0.0,
        avg_margin=margin_sum / hub_count if hub_count > 0 else 0.0,
        is_hub=hub_score > threshold,
    )


@dataclass
class HubDetectionResult:
    """Outcome of one hub detection run."""

    full_scan: bool
    workload_size: int
    corpus_size: int
    top_n: int
    threshold_multiplier: float
    expected_score: float
    threshold: float
    processed_queries: int = 0
    failed_batches: int = 0
    observations: Dict[str, HubObservation] = field(default_factory=dict)

    @property
    def hubs(self) -> Dict[str, HubStats]:
        """Stats for images above the threshold."""

        return {image_id: obs.to_stats() for image_id, obs in self.observations.items() if obs.is_hub}

    @property
    def stats(self) -> Dict[str, Optional[HubStats]]:
        """Per-image outcome; ``None`` means the image's hub status is cleared."""

        return {image_id: obs.to_stats() if obs.is_hub else None for image_id, obs in self.observations.items()}

    def gap(self, image_id: str) -> float:
        """Distance of an image's hub score above (positive) or below (negative) the threshold."""

        return self.observations[image_id].hub_score - self.threshold

    def describe(self, image_id: str) -> str:
        obs = self.observations[image_id]
        verdict = "hub" if obs.is_hub else "not a hub"
        return (
            f"{image_id}: appeared in {obs.hub_count}/{self.workload_size} queries, "
            f"hub_score={obs.hub_score:.5f}, threshold={self.threshold:.5f} "
            f"(expected {self.expected_score:.5f} x {self.threshold_multiplier}), "
            f"gap={self.gap(image_id):+.5f} -> {verdict}"
        )


class HubDetector:
    """Count how often each image ranks in the top-N of every workload query.

    Ranking always uses the whole corpus. When ``image_ids`` is given, only
    those images are accounted for, so the bookkeeping and the writes that
    follow stay proportional to the target set.
    """

    def __init__(self, embedder: Embedder, settings: Optional[HubDetectionSettings] = None) -> None:
        self.embedder = embedder
        self.settings = settings or HubDetectionSettings()

    def detect(
        self,
        workload: Sequence[str],
        corpus: VectorStore,
        image_ids: Optional[Iterable[str]] = None,
        token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> HubDetectionResult:
        """Run the workload against ``corpus`` and classify the target images.

        Raises :class:`vibetag.errors.OperationCancelled` if ``token`` is
        cancelled; a failed or timed-out embedding batch is skipped instead.
        """

        settings = self.settings
        corpus_ids = corpus.ids()
        matrix = corpus.as_matrix()
        full_scan = image_ids is None
        expected, threshold = hub_threshold(len(corpus_ids), settings.top_n, settings.threshold_multiplier)
        result = HubDetectionResult(
            full_scan=full_scan,
            workload_size=len(workload),
            corpus_size=len(corpus_ids),
            top_n=settings.top_n,
            threshold_multiplier=settings.threshold_multiplier,
            expected_score=expected,
            threshold=threshold,
        )

        targets = list(corpus_ids) if full_scan else sorted(set(image_ids))
        mode = "full" if full_scan else f"incremental ({len(targets)} image(s))"
        logger.info(f"Starting {mode} hub detection: {len(workload)} queries, {len(corpus_ids)} images")
        logger.info(f"Top N: {settings.top_n}, threshold multiplier: {settings.threshold_multiplier}x")

        if not corpus_ids:
            logger.warning("No images with embeddings found")
            for image_id in targets:
                result.observations[image_id] = evaluate_observation(image_id, 0, 0.0, 0.0, len(workload), threshold)
            return result

        target_index = {image_id: position for position, image_id in enumerate(targets)}
        target_positions = np.full(len(corpus_ids), -1, dtype=np.int64)
        for corpus_position, image_id in enumerate(corpus_ids):
            position = target_index.get(image_id)
            if position is not None:
                target_positions[corpus_position] = position
        missing = len(targets) - int((target_positions >= 0).sum())
        if missing:
            logger.warning(f"{missing} target image(s) have no embedding in the corpus and will be cleared")

        counts = np.zeros(len(targets), dtype=np.int64)
        score_sums = np.zeros(len(targets), dtype=np.float64)
        margin_sums = np.zeros(len(targets), dtype=np.float64)

        for batch, embeddings in self._iter_batch_embeddings(workload, matrix.shape[1], result, token):
            scores = embeddings @ matrix.T
            for row, query_embedding in zip(scores, embeddings):
                if not np.isfinite(query_embedding).all() or not np.any(query_embedding):
                    continue
                top = rank_top_n(row, settings.top_n)
                top_scores = row[top].astype(np.float64)
                query_mean = float(top_scores.mean())
                positions = target_positions[top]
                hit = positions >= 0
                counts[positions[hit]] += 1
                score_sums[positions[hit]] += top_scores[hit]
                margin_sums[positions[hit]] += top_scores[hit] - query_mean
                result.processed_queries += 1
            if on_progress is not None:
                on_progress(result.processed_queries, len(workload))

        logger.info(
            f"Processed {result.processed_queries}/{len(workload)} queries "
            f"({result.failed_batches} failed batch(es))"
        )
        logger.info(
            f"Expected hub score (random): {expected:.4f}, hub threshold: {threshold:.4f}"
        )

        for image_id, position in target_index.items():
            result.observations[image_id] = evaluate_observation(
                image_id,
                int(counts[position]),
                float(score_sums[position]),
                float(margin_sums[position]),
                len(workload),
                threshold,
            )

        hub_total = sum(1 for obs in result.observations.values() if obs.is_hub)
        logger.info(f"Identified {hub_total} hub(s), {len(result.observations) - hub_total} below threshold")
        return result

    def _iter_batch_embeddings(
        self,
        workload: Sequence[str],
        dim: int,
        result: HubDetectionResult,
        token: Optional[CancellationToken],
    ) -> Iterable[Tuple[List[str], np.ndarray]]:
        """Yield ``(batch, embeddings)`` in workload order, prefetching a few batches ahead.

        The caller is the only consumer, so counters it updates need no locking.
        """

        settings = self.settings
        batches = [list(workload[i : i + settings.batch_size]) for i in range(0, len(workload), settings.batch_size)]
        executor = ThreadPoolExecutor(max_workers=settings.max_in_flight, thread_name_prefix="hub-embed")
        in_flight: Deque[Tuple[int, List[str], Future]] = deque()
        remaining = iter(enumerate(batches))

        def submit_next() -> None:
            item = next(remaining, None)
            if item is not None:
                number, batch = item
                in_flight.append((number, batch, executor.submit(self.embedder.embed_texts, batch)))

        try:
            for _ in range(settings.max_in_flight):
                submit_next()

            progress = tqdm(total=len(batches), desc="Hub detection", unit="batch", leave=False)
            with progress:
                while in_flight:
                    if token is not None:
                        token.raise_if_cancelled()
                    number, batch, future = in_flight.popleft()
                    try:
                        embeddings = self._validate(future.result(timeout=settings.batch_timeout_seconds), batch, dim)
                    except FutureTimeoutError:
                        future.cancel()
                        result.failed_batches += 1
                        logger.warning(
                            f"Embedding batch {number + 1}/{len(batches)} timed out after "
                            f"{settings.batch_timeout_seconds}s, skipping {len(batch)} queries"
                        )
                        continue
                    except Exception as exc:  # noqa: BLE001
                        result.failed_batches += 1
                        logger.warning(f"Embedding batch {number + 1}/{len(batches)} failed, skipping: {exc}")
                        continue
                    finally:
                        submit_next()
                        progress.update(1)
                    yield batch, embeddings
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _validate(embeddings: np.ndarray, batch: List[str], dim: int) -> np.ndarray:
        embeddings = np.asarray(embeddings, dtype=np.float32)
        if embeddings.ndim != 2 or embeddings.shape != (len(batch), dim):
            raise EmbeddingProviderError(
                f"Expected embeddings of shape {(len(batch), dim)}, got {embeddings.shape}"
            )
        return embeddings
