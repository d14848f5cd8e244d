"""
Vehicle as Code - In-Memory State Store

Keeps every snapshot in memory. Used for tests, dry runs and
embedding the engine where durability is handled elsewhere.
"""

from __future__ import annotations
from typing import List
import logging
import threading

from vac.adapters.base import StateStore
from vac.errors import StalePlanError, StateNotFoundError
from vac.models import ResourceGraph, StateSnapshot

logger = logging.getLogger(__name__)


class InMemoryStateStore(StateStore):
    """Lock-guarded, append-only list of snapshots."""

    def __init__(self):
        self._snapshots: List[StateSnapshot] = []
        self._lock = threading.Lock()

    def load_latest(self) -> StateSnapshot:
        with self._lock:
            if not self._snapshots:
                raise StateNotFoundError("No state has been recorded yet")
            return self._snapshots[-1]

    def save(self, graph: ResourceGraph, generation: int) -> StateSnapshot:
        with self._lock:
            latest = self._snapshots[-1].generation if self._snapshots else 0
            if generation != latest + 1:
                raise StalePlanError(
                    f"Cannot record generation {generation}: "
                    f"latest recorded generation is {latest}"
                )
            snapshot = StateSnapshot.from_graph(graph, generation)
            self._snapshots.append(snapshot)

        logger.info(
            f"Recorded state generation {generation} "
            f"(fingerprint {snapshot.fingerprint[:12]})"
        )
        return snapshot

    def history(self) -> List[int]:
        with self._lock:
            return [s.generation for s in self._snapshots]
