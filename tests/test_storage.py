import numpy as np
import pytest

from vibetag.models import HubStats
from vibetag.storage import InMemoryTagStore, SqliteDatabase, SqliteHubStatsStore, SqliteTagStore
from vibetag.vector_store import MemoryVectorStore, rank_top_n


@pytest.fixture
def database(tmp_path):
    with SqliteDatabase(tmp_path / "db" / "vibetag.sqlite3") as db:
        yield db


class TestSqliteTagStore:
    def test_upsert_orders_and_overwrites(self, database):
        store = SqliteTagStore(database)
        store.upsert_tag("img", "b", 0.4)
        store.upsert_tag("img", "a", 0.4)
        store.upsert_tag("img", "c", 0.1)
        store.upsert_tag("img", "c", 0.9)

        assert store.get_tags("img") == {"c": 0.9, "a": 0.4, "b": 0.4}
        assert list(store.get_tags("img")) == ["c", "a", "b"]

    def test_delete(self, database):
        store = SqliteTagStore(database)
        store.upsert_tag("img", "a", 0.4)
        store.delete_tag("img", "a")
        store.delete_tag("img", "missing")
        assert store.get_tags("img") == {}

    def test_unprepared_database_raises(self, tmp_path):
        with pytest.raises(RuntimeError):
            SqliteTagStore(SqliteDatabase(tmp_path / "x.sqlite3")).get_tags("img")


class TestSqliteHubStatsStore:
    def test_replace_and_clear(self, database):
        store = SqliteHubStatsStore(database)
        store.replace("img", HubStats(3, 0.3, 0.5, 0.02))
        store.replace("img", HubStats(4, 0.4, 0.6, 0.03))
        store.replace("other", HubStats(1, 0.1, 0.2, 0.0))

        assert store.get("img") == HubStats(4, 0.4, 0.6, 0.03)
        assert store.image_ids() == ["img", "other"]

        store.clear("img")
        assert store.get("img") is None
        assert store.image_ids() == ["other"]


class TestInMemoryTagStore:
    def test_writes_counter_ignores_noop_delete(self):
        store = InMemoryTagStore()
        store.upsert_tag("img", "a", 0.5)
        store.delete_tag("img", "missing")
        store.delete_tag("img", "a")
        assert store.writes == 2
        assert store.get_tags("img") == {}


class TestMemoryVectorStore:
    def test_add_replaces_existing_ids(self):
        store = MemoryVectorStore(dim=2)
        store.add(["a", "b"], np.array([[1.0, 0.0], [0.0, 1.0]]))
        store.add(["a", "c"], np.array([[0.0, 1.0], [0.6, 0.8]]))

        assert store.ids() == ["a", "b", "c"]
        np.testing.assert_allclose(store.get_vector("a"), [0.0, 1.0])
        assert len(store) == 3

    def test_search_breaks_ties_by_insertion_order(self):
        store = MemoryVectorStore(dim=2)
        store.add(["x", "y", "z"], np.array([[0.0, 1.0], [1.0, 0.0], [1.0, 0.0]]))
        results = store.search(np.array([1.0, 0.0]), k=2)
        assert [item_id for item_id, _ in results] == ["y", "z"]

    def test_rejects_wrong_dimension(self):
        store = MemoryVectorStore(dim=3)
        with pytest.raises(ValueError):
            store.add(["a"], np.ones((1, 2)))

    def test_save_and_load(self, tmp_path):
        store = MemoryVectorStore(dim=2)
        store.add(["a", "b"], np.array([[1.0, 0.0], [0.6, 0.8]]), payloads=[{"path": "a.png"}, {}])
        store.save(str(tmp_path / "index"))

        loaded = MemoryVectorStore(dim=2)
        loaded.load(str(tmp_path / "index"))

        assert loaded.ids() == ["a", "b"]
        assert loaded.get_payload("a") == {"path": "a.png"}
        np.testing.assert_allclose(loaded.as_matrix(), store.as_matrix())

    def test_load_missing_files(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            MemoryVectorStore(dim=2).load(str(tmp_path / "nothing"))

    def test_rank_top_n(self):
        scores = np.array([0.1, 0.5, 0.5, 0.9])
        assert rank_top_n(scores, 3).tolist() == [3, 1, 2]
        assert rank_top_n(scores, 0).tolist() == []
