# Path: vibetag/storage/memory.py
# Purpose: Provide in-process tag and hub stats stores.
# Layer: vibetag/storage.
# Details: Dict-backed implementations guarded by a lock; used by tests and single-process runs.

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from vibetag.models.domain import HubStats


class InMemoryTagStore:
    """TagStore implementation backed by nested dictionaries."""

    def __init__(self) -> None:
        self._tags: Dict[str, Dict[str, float]] = {}
        self._lock = threading.Lock()
        self.writes = 0

    def get_tags(self, image_id: str) -> Dict[str, float]:
        with self._lock:
            tags = dict(self._tags.get(image_id, {}))
        return dict(sorted(tags.items(), key=lambda item: (-item[1], item[0])))

    def upsert_tag(self, image_id: str, concept_id: str, score: float) -> None:
        with self._lock:
            self._tags.setdefault(image_id, {})[concept_id] = float(score)
            self.writes += 1

    def delete_tag(self, image_id: str, concept_id: str) -> None:
        with self._lock:
            image_tags = self._tags.get(image_id)
            if image_tags is not None and image_tags.pop(concept_id, None) is not None:
                self.writes += 1
                if not image_tags:
                    del self._tags[image_id]


class InMemoryHubStatsStore:
    """HubStatsStore implementation backed by a dictionary."""

    def __init__(self) -> None:
        self._stats: Dict[str, HubStats] = {}
        self._lock = threading.Lock()

    def get(self, image_id: str) -> Optional[HubStats]:
        with self._lock:
            return self._stats.get(image_id)

    def replace(self, image_id: str, stats: HubStats) -> None:
        with self._lock:
            self._stats[image_id] = stats

    def clear(self, image_id: str) -> None:
        with self._lock:
            self._stats.pop(image_id, None)

    def image_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._stats)
