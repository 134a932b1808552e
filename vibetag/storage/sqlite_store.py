# Path: vibetag/storage/sqlite_store.py
# Purpose: Persist image tags and hub statistics in a local SQLite database.
# Layer: vibetag/storage.
# Details: One shared connection per database file; writes are serialized with a lock for worker threads.

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Dict, List, Optional

from vibetag.models.domain import HubStats


class SqliteDatabase:
    """Own the SQLite connection and schema shared by the tag and hub stats stores."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._conn: sqlite3.Connection | None = None
        self.lock = threading.RLock()

    def prepare(self) -> None:
        """Open or create the database file and ensure the schema exists."""

        if self._conn is not None:
            return
        if str(self.path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS image_tags (
                image_id TEXT NOT NULL,
                concept_id TEXT NOT NULL,
                score REAL NOT NULL,
                PRIMARY KEY (image_id, concept_id)
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS image_hub_stats (
                image_id TEXT PRIMARY KEY,
                hub_count INTEGER NOT NULL,
                hub_score REAL NOT NULL,
                avg_similarity REAL NOT NULL,
                avg_margin REAL NOT NULL
            )
            """
        )
        self._conn.commit()

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SqliteDatabase used before prepare().")
        return self._conn

    def finalize(self) -> None:
        """Close the connection."""

        with self.lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "SqliteDatabase":
        self.prepare()
        return self

    def __exit__(self, *exc_info) -> None:
        self.finalize()


class SqliteTagStore:
    """TagStore implementation backed by the ``image_tags`` table."""

    def __init__(self, database: SqliteDatabase) -> None:
        self._db = database

    def get_tags(self, image_id: str) -> Dict[str, float]:
        with self._db.lock:
            rows = self._db.connection.execute(
                "SELECT concept_id, score FROM image_tags WHERE image_id = ? ORDER BY score DESC, concept_id ASC",
                (image_id,),
            ).fetchall()
        return {concept_id: float(score) for concept_id, score in rows}

    def upsert_tag(self, image_id: str, concept_id: str, score: float) -> None:
        with self._db.lock:
            conn = self._db.connection
            conn.execute(
                """
                INSERT INTO image_tags (image_id, concept_id, score)
                VALUES (?, ?, ?)
                ON CONFLICT(image_id, concept_id) DO UPDATE SET score = excluded.score
                """,
                (image_id, concept_id, float(score)),
            )
            conn.commit()

    def delete_tag(self, image_id: str, concept_id: str) -> None:
        with self._db.lock:
            conn = self._db.connection
            conn.execute("DELETE FROM image_tags WHERE image_id = ? AND concept_id = ?", (image_id, concept_id))
            conn.commit()


class SqliteHubStatsStore:
    """HubStatsStore implementation backed by the ``image_hub_stats`` table."""

    def __init__(self, database: SqliteDatabase) -> None:
        self._db = database

    def get(self, image_id: str) -> Optional[HubStats]:
        with self._db.lock:
            row = self._db.connection.execute(
                "SELECT hub_count, hub_score, avg_similarity, avg_margin FROM image_hub_stats WHERE image_id = ?",
                (image_id,),
            ).fetchone()
        if row is None:
            return None
        return HubStats(hub_count=int(row[0]), hub_score=float(row[1]), avg_similarity=float(row[2]), avg_margin=float(row[3]))

    def replace(self, image_id: str, stats: HubStats) -> None:
        with self._db.lock:
            conn = self._db.connection
            conn.execute(
                """
                INSERT INTO image_hub_stats (image_id, hub_count, hub_score, avg_similarity, avg_margin)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(image_id) DO UPDATE SET
                    hub_count = excluded.hub_count,
                    hub_score = excluded.hub_score,
                    avg_similarity = excluded.avg_similarity,
                    avg_margin = excluded.avg_margin
                """,
                (image_id, stats.hub_count, stats.hub_score, stats.avg_similarity, stats.avg_margin),
            )
            conn.commit()

    def clear(self, image_id: str) -> None:
        with self._db.lock:
            conn = self._db.connection
            conn.execute("DELETE FROM image_hub_stats WHERE image_id = ?", (image_id,))
            conn.commit()

    def image_ids(self) -> List[str]:
        with self._db.lock:
            rows = self._db.connection.execute("SELECT image_id FROM image_hub_stats ORDER BY image_id").fetchall()
        return [row[0] for row in rows]
