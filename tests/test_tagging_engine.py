import threading

import numpy as np
import pytest
from PIL import Image

from vibetag.catalog import ConceptCatalog
from vibetag.embedders import HashingEmbedder
from vibetag.errors import ImageAcquisitionError
from vibetag.models import Concept, ImageRecord
from vibetag.storage import InMemoryTagStore
from vibetag.tagging import TaggingEngine

SCENARIO = {
    "minimal": 0.91,
    "clean": 0.88,
    "flat": 0.50,
    "modern": 0.49,
    "playful": 0.19,
    "retro": 0.18,
    "dark": 0.17,
    "brutalist": 0.16,
    "organic": 0.15,
    "busy": 0.10,
}


@pytest.fixture
def engine_and_image(catalog_factory, tagging_settings):
    catalog, embedding = catalog_factory(SCENARIO)
    store = InMemoryTagStore()
    engine = TaggingEngine(catalog, store, settings=tagging_settings)
    return engine, store, ImageRecord(id="img-1", embedding=embedding)


class TestTag:
    def test_selects_and_stores_tags(self, engine_and_image):
        engine, store, image = engine_and_image
        tags = engine.tag(image)

        expected = ["minimal", "clean", "flat", "modern", "playful", "retro", "dark", "brutalist"]
        assert list(tags) == expected
        assert list(store.get_tags("img-1")) == expected
        assert image.tags == tags

    def test_is_idempotent(self, engine_and_image):
        engine, store, image = engine_and_image
        first = engine.tag(image)
        writes = store.writes

        second = engine.tag(image)

        assert second == first
        assert store.writes == writes
        assert engine.reconcile(image.id, second).unchanged

    def test_stale_tags_are_deleted(self, engine_and_image):
        engine, store, image = engine_and_image
        store.upsert_tag("img-1", "busy", 0.99)
        store.upsert_tag("img-1", "removed-concept", 0.5)

        engine.tag(image)

        stored = store.get_tags("img-1")
        assert "busy" not in stored
        assert "removed-concept" not in stored
        assert len(stored) == 8

    def test_only_changed_scores_are_upserted(self, engine_and_image):
        engine, store, image = engine_and_image
        tags = engine.tag(image)
        store.upsert_tag("img-1", "minimal", 0.1)

        result = engine.reconcile("img-1", tags)

        assert result.upserted == ["minimal"]
        assert result.deleted == []

    def test_empty_catalog_yields_no_tags(self):
        engine = TaggingEngine(ConceptCatalog(), InMemoryTagStore())
        image = ImageRecord(id="img-1", embedding=np.ones(4, dtype=np.float32) / 2)
        assert engine.tag(image) == {}

    def test_catalog_smaller_than_floor_returns_whole_catalog(self, catalog_factory, tagging_settings):
        catalog, embedding = catalog_factory({"a": 0.05, "b": 0.12, "c": 0.02})
        engine = TaggingEngine(catalog, InMemoryTagStore(), settings=tagging_settings)

        tags = engine.tag(ImageRecord(id="img-1", embedding=embedding))

        assert list(tags) == ["b", "a", "c"]

    def test_concepts_without_embedding_are_skipped(self, catalog_factory, tagging_settings):
        catalog, embedding = catalog_factory({"a": 0.9, "b": 0.8})
        catalog.upsert(Concept(id="unembedded", label="unembedded"))
        engine = TaggingEngine(catalog, InMemoryTagStore(), settings=tagging_settings)

        tags = engine.tag(ImageRecord(id="img-1", embedding=embedding))

        assert set(tags) == {"a", "b"}


class TestAcquisition:
    def test_missing_embedding_and_path_raises(self, engine_and_image):
        engine, store, _ = engine_and_image
        with pytest.raises(ImageAcquisitionError) as excinfo:
            engine.tag(ImageRecord(id="img-2"))
        assert excinfo.value.image_id == "img-2"
        assert store.get_tags("img-2") == {}

    def test_dimension_mismatch_raises(self, engine_and_image):
        engine, _, _ = engine_and_image
        with pytest.raises(ImageAcquisitionError):
            engine.tag(ImageRecord(id="img-2", embedding=np.ones(3, dtype=np.float32)))

    def test_unreadable_file_raises(self, tmp_path, catalog_factory):
        catalog, _ = catalog_factory({"a": 0.5})
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"not an image")
        engine = TaggingEngine(catalog, InMemoryTagStore(), embedder=HashingEmbedder(dim=catalog.dim))

        with pytest.raises(ImageAcquisitionError):
            engine.tag(ImageRecord(id="img-2", path=broken))

    def test_embeds_image_file(self, tmp_path):
        embedder = HashingEmbedder(dim=16, image_size=8)
        concepts = [Concept(id=f"c{i}", label=f"c{i}", embedding=embedder.embed_text(f"c{i}")) for i in range(10)]
        path = tmp_path / "shot.png"
        Image.new("RGB", (40, 30), color=(200, 30, 90)).save(path)
        engine = TaggingEngine(ConceptCatalog(concepts), InMemoryTagStore(), embedder=embedder)

        image = ImageRecord(id="shot", path=path)
        tags = engine.tag(image)

        assert image.embedding is not None and image.embedding.shape == (16,)
        assert len(tags) >= 8


class TestTagAll:
    def test_collects_failures_and_tags_the_rest(self, catalog_factory, tagging_settings):
        catalog, embedding = catalog_factory(SCENARIO)
        store = InMemoryTagStore()
        engine = TaggingEngine(catalog, store, settings=tagging_settings)
        images = [ImageRecord(id=f"img-{i}", embedding=embedding) for i in range(12)]
        images.append(ImageRecord(id="no-embedding"))

        summary = engine.tag_all(images, max_workers=4)

        assert len(summary.tagged) == 12
        assert list(summary.failed) == ["no-embedding"]
        assert all(len(store.get_tags(f"img-{i}")) == 8 for i in range(12))

    def test_concurrent_tagging_of_one_image_is_consistent(self, engine_and_image):
        engine, store, image = engine_and_image
        threads = [threading.Thread(target=engine.tag, args=(ImageRecord(id="img-1", embedding=image.embedding),)) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store.get_tags("img-1")) == 8
        assert store.writes == 8

    def test_store_error_for_one_image_does_not_abort_batch(self, catalog_factory, tagging_settings):
        class DiskFullStore(InMemoryTagStore):
            def upsert_tag(self, image_id, concept_id, score):
                if image_id == "bad":
                    raise OSError("disk full")
                super().upsert_tag(image_id, concept_id, score)

        catalog, embedding = catalog_factory(SCENARIO)
        store = DiskFullStore()
        engine = TaggingEngine(catalog, store, settings=tagging_settings)
        images = [ImageRecord(id=image_id, embedding=embedding) for image_id in ["ok1", "bad", "ok2"]]

        summary = engine.tag_all(images, max_workers=2)

        assert set(summary.tagged) == {"ok1", "ok2"}
        assert list(summary.failed) == ["bad"]
        assert "disk full" in summary.failed["bad"]
        assert len(store.get_tags("ok2")) == 8
