import itertools
import json

import numpy as np
import pytest

from vibetag.catalog import (
    ConceptCatalog,
    OppositeIndex,
    concept_id_for_label,
    find_asymmetric_pairs,
    repair_opposite_symmetry,
)
from vibetag.models import Concept


@pytest.fixture
def catalog():
    return ConceptCatalog(
        [
            Concept(id="minimal", label="Minimal", synonyms=["clean", "simple"], opposites={"busy"}),
            Concept(id="busy", label="Busy"),
            Concept(id="dark-mode", label="Dark Mode", opposites={"light-theme", "dark-mode"}),
            Concept(id="light-theme", label="Light Theme"),
            Concept(id="playful", label="Playful", opposites={"serious", "ghost"}),
            Concept(id="serious", label="Serious", opposites={"playful"}),
        ]
    )


class TestCatalog:
    def test_concept_id_for_label(self):
        assert concept_id_for_label("  Dark Mode ") == "dark-mode"
        assert concept_id_for_label("Hi-Fi / Lo-Fi") == "hi-fi-lo-fi"

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            ConceptCatalog([Concept(id="a", label="a"), Concept(id="a", label="b")])

    def test_resolve_by_id_label_and_synonym(self, catalog):
        assert catalog.resolve("minimal") == "minimal"
        assert catalog.resolve("Dark Mode") == "dark-mode"
        assert catalog.resolve("SIMPLE") == "minimal"
        assert catalog.resolve("unknown") is None
        assert catalog.resolve("   ") is None

    def test_embedding_matrix_skips_unusable_concepts(self, caplog):
        catalog = ConceptCatalog(
            [
                Concept(id="a", label="a", embedding=np.array([1.0, 0.0], dtype=np.float32)),
                Concept(id="b", label="b"),
                Concept(id="c", label="c", embedding=np.array([1.0, 0.0, 0.0], dtype=np.float32)),
            ],
            dim=2,
        )
        ids, matrix = catalog.embedding_matrix()
        assert ids == ["a"]
        assert matrix.shape == (1, 2)
        assert "Excluded 2 concepts" in caplog.text

    def test_upsert_invalidates_matrix(self):
        catalog = ConceptCatalog([Concept(id="a", label="a", embedding=np.array([1.0, 0.0], dtype=np.float32))])
        assert catalog.embedding_matrix()[0] == ["a"]
        catalog.upsert(Concept(id="b", label="b", embedding=np.array([0.0, 1.0], dtype=np.float32)))
        assert catalog.embedding_matrix()[0] == ["a", "b"]

    def test_file_round_trip(self, tmp_path, catalog):
        catalog.upsert(Concept(id="flat", label="Flat", embedding=np.array([0.6, 0.8], dtype=np.float32)))
        path = tmp_path / "concepts.json"
        catalog.save(path)

        loaded = ConceptCatalog.from_file(path)

        assert [c.id for c in loaded] == [c.id for c in catalog]
        assert loaded.get("minimal").synonyms == ["clean", "simple"]
        assert loaded.get("playful").opposites == {"serious", "ghost"}
        np.testing.assert_allclose(loaded.get("flat").embedding, [0.6, 0.8])

    def test_from_file_accepts_wrapped_payload(self, tmp_path):
        path = tmp_path / "concepts.json"
        path.write_text(json.dumps({"concepts": [{"id": "a", "label": "A"}]}))
        assert ConceptCatalog.from_file(path).get("a").label == "A"

    def test_save_without_path_raises(self, catalog):
        with pytest.raises(ValueError):
            catalog.save()


class TestOpposites:
    def test_predicate_is_symmetric_over_asymmetric_storage(self, catalog):
        index = catalog.opposite_index()
        assert index.is_opposite("minimal", "busy")
        assert index.is_opposite("busy", "minimal")
        for a, b in itertools.product([c.id for c in catalog], repeat=2):
            assert index.is_opposite(a, b) == index.is_opposite(b, a)

    def test_predicate_is_case_insensitive(self):
        index = OppositeIndex({"Minimal": ["BUSY"]})
        assert index.is_opposite("busy", "MINIMAL")

    def test_has_opposite_tags(self, catalog):
        index = catalog.opposite_index()
        assert index.has_opposite_tags("busy", ["flat", "minimal"])
        assert not index.has_opposite_tags("busy", ["flat", "playful"])
        assert index.conflicting_tags("serious", ["playful", "minimal"]) == ["playful"]

    def test_set_opposites_refreshes_index(self, catalog):
        assert not catalog.opposite_index().is_opposite("busy", "serious")
        stored = catalog.set_opposites("busy", ["Serious", "busy"])
        assert stored == frozenset({"serious"})
        assert catalog.opposite_index().is_opposite("serious", "busy")

    def test_set_opposites_unknown_concept(self, catalog):
        with pytest.raises(KeyError):
            catalog.set_opposites("nope", ["busy"])

    def test_find_asymmetric_pairs(self, catalog):
        assert find_asymmetric_pairs(catalog) == [("dark-mode", "light-theme"), ("minimal", "busy")]


class TestRepair:
    def test_dry_run_reports_without_writing(self, catalog):
        report = repair_opposite_symmetry(catalog, dry_run=True)

        assert sorted(report.added_links) == [("busy", "minimal"), ("light-theme", "dark-mode")]
        assert report.removed_self_links == ["dark-mode"]
        assert report.dangling == [("playful", "ghost")]
        assert report.changed
        assert catalog.get("busy").opposites == set()

    def test_repair_makes_storage_symmetric(self, catalog):
        repair_opposite_symmetry(catalog)

        assert catalog.get("busy").opposites == {"minimal"}
        assert catalog.get("light-theme").opposites == {"dark-mode"}
        assert catalog.get("dark-mode").opposites == {"light-theme"}
        assert find_asymmetric_pairs(catalog) == []
        assert not repair_opposite_symmetry(catalog).changed
