# Path: vibetag/tagging/engine.py
# Purpose: Tag images with catalog concepts and keep stored tags in sync with the selection.
# Layer: vibetag/tagging.
# Details: Scores one embedding against the whole catalog, selects tags, and reconciles the tag store.

from __future__ import annotations

import logging
import threading
import zlib
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np
from PIL import Image
from tqdm import tqdm

from config.settings import TaggingSettings
from vibetag.catalog.catalog import ConceptCatalog
from vibetag.embedders.base import Embedder
from vibetag.errors import ImageAcquisitionError
from vibetag.models.domain import ImageRecord, TagScore, TagSet
from vibetag.storage.base import TagStore
from .selection import rank_scores, select_tags

logger = logging.getLogger(__name__)

_LOCK_STRIPES = 64


@dataclass
class ReconcileResult:
    """Writes issued to bring one image's stored tags in line with its tag set."""

    image_id: str
    upserted: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)

    @property
    def unchanged(self) -> bool:
        return not self.upserted and not self.deleted


@dataclass
class TaggingSummary:
    """Outcome of tagging many images."""

    tagged: Dict[str, TagSet] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)


class TaggingEngine:
    """Assign concept tags to images from their embeddings.

    Tag selection is a pure function of the image embedding, the catalog
    snapshot, and ``settings``. Writes for one image are serialized through a
    striped lock so concurrent taggings of the same image cannot interleave
    their read-modify-write.
    """

    def __init__(
        self,
        catalog: ConceptCatalog,
        tag_store: TagStore,
        embedder: Optional[Embedder] = None,
        settings: Optional[TaggingSettings] = None,
    ) -> None:
        self.catalog = catalog
        self.tag_store = tag_store
        self.embedder = embedder
        self.settings = settings or TaggingSettings()
        self._locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]

    def score(self, embedding: np.ndarray) -> List[TagScore]:
        """Return every scorable concept ranked by cosine similarity to ``embedding``."""

        ids, matrix = self.catalog.embedding_matrix()
        if not ids:
            return []
        vector = np.asarray(embedding, dtype=np.float32).reshape(-1)
        if vector.shape[0] != matrix.shape[1]:
            raise ValueError(f"Embedding dimension {vector.shape[0]} does not match catalog dimension {matrix.shape[1]}.")
        return rank_scores(ids, matrix @ vector)

    def select(self, embedding: np.ndarray) -> TagSet:
        """Return the tag set for an embedding without touching the store."""

        return select_tags(self.score(embedding), self.settings)

    def tag(self, image: ImageRecord) -> TagSet:
        """Compute the tag set of ``image`` and make the stored tags match it.

        Raises :class:`ImageAcquisitionError` when the image embedding cannot be
        obtained; nothing is written in that case.
        """

        embedding = self.acquire_embedding(image)
        tag_set = self.select(embedding)
        result = self.reconcile(image.id, tag_set)
        image.tags = dict(tag_set)
        logger.debug(
            f"Tagged image {image.id} with {len(tag_set)} concepts "
            f"({len(result.upserted)} upserted, {len(result.deleted)} deleted)"
        )
        return tag_set

    def acquire_embedding(self, image: ImageRecord) -> np.ndarray:
        """Return the stored embedding of an image, embedding its file if needed."""

        if image.embedding is not None:
            vector = np.asarray(image.embedding, dtype=np.float32).reshape(-1)
        else:
            vector = self._embed_file(image)

        expected = self.catalog.dim
        if expected is not None and vector.shape[0] != expected:
            raise ImageAcquisitionError(image.id, f"embedding dimension {vector.shape[0]} != catalog dimension {expected}")
        image.embedding = vector
        return vector

    def _embed_file(self, image: ImageRecord) -> np.ndarray:
        if image.path is None:
            raise ImageAcquisitionError(image.id, "no stored embedding and no image path")
        if self.embedder is None:
            raise ImageAcquisitionError(image.id, "no stored embedding and no embedder configured")
        try:
            with Image.open(image.path) as img:
                return np.asarray(self.embedder.embed_image(img), dtype=np.float32).reshape(-1)
        except Exception as exc:  # noqa: BLE001
            raise ImageAcquisitionError(image.id, f"failed to embed {image.path}: {exc}") from exc

    def reconcile(self, image_id: str, tag_set: TagSet) -> ReconcileResult:
        """Upsert changed scores and delete tags that are no longer selected."""

        result = ReconcileResult(image_id=image_id)
        with self._lock_for(image_id):
            existing = self.tag_store.get_tags(image_id)
            for concept_id, score in tag_set.items():
                if existing.get(concept_id) != score:
                    self.tag_store.upsert_tag(image_id, concept_id, score)
                    result.upserted.append(concept_id)
            for concept_id in existing:
                if concept_id not in tag_set:
                    self.tag_store.delete_tag(image_id, concept_id)
                    result.deleted.append(concept_id)
        return result

    def tag_all(self, images: Iterable[ImageRecord], max_workers: Optional[int] = None) -> TaggingSummary:
        """Tag many images in a thread pool.

        Used after catalog changes so that new concepts reach existing images.
        Per-image failures are collected in the summary instead of raised.
        """

        summary = TaggingSummary()
        image_list = list(images)
        workers = max_workers or self.settings.max_workers
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self.tag, image): image for image in image_list}
            for future in tqdm(as_completed(futures), total=len(futures), desc="Tagging images", unit="img"):
                image = futures[future]
                try:
                    summary.tagged[image.id] = future.result()
                except ImageAcquisitionError as exc:
                    logger.warning(f"Skipping image {image.id}: {exc}")
                    summary.failed[image.id] = str(exc)
                except Exception as exc:  # noqa: BLE001
                    logger.exception(f"Tagging failed for image {image.id}")
                    summary.failed[image.id] = f"{type(exc).__name__}: {exc}"

        logger.info(f"Tagged {len(summary.tagged)} images, {len(summary.failed)} failed")
        return summary

    def _lock_for(self, image_id: str) -> threading.Lock:
        return self._locks[zlib.crc32(image_id.encode("utf-8")) % _LOCK_STRIPES]
