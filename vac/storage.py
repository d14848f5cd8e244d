"""
Vehicle as Code - Storage Layer

Durable state store plus plan/result artifacts.
Uses JSON files - can be extended to SQLite or other backends.
"""

from __future__ import annotations
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, List, Optional
import logging

from vac.adapters.base import StateStore
from vac.errors import StalePlanError, StateNotFoundError, VacError
from vac.models import ApplyResult, Plan, ResourceGraph, StateSnapshot

logger = logging.getLogger(__name__)


def atomic_write_json(path: Path, content: Any) -> None:
    """Write JSON to `path` so readers see either the old or the new file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(content, f, indent=2, default=str)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class JsonStateStore(StateStore):
    """
    Manages storage of state snapshots, plans and apply results.

    Directory structure:
    /state/
        latest.json             - Latest snapshot (replaced atomically)
        generations/
            000001.json         - Snapshot history, one file per generation
        plans/
            <plan_id>.json      - Plan previews for review
        results/
            <plan_id>.json      - Apply results

    Writes are serialized by an in-process lock; `latest.json` is only
    ever replaced, never rewritten in place.
    """

    def __init__(self, base_path: str = "./state"):
        """Initialize storage with base path."""
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        logger.info(f"State storage initialized at: {self.base_path.absolute()}")

    @property
    def latest_path(self) -> Path:
        return self.base_path / "latest.json"

    def _generation_path(self, generation: int) -> Path:
        return self.base_path / "generations" / f"{generation:06d}.json"

    def _read_snapshot(self, path: Path) -> StateSnapshot:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        snapshot = StateSnapshot.model_validate(data)
        if not snapshot.is_consistent():
            raise VacError(
                "State snapshot is corrupt",
                errors=[f"{path}: fingerprint does not match content"],
            )
        return snapshot

    # =========================================================================
    # STATE STORE INTERFACE
    # =========================================================================

    def load_latest(self) -> StateSnapshot:
        """Load the latest snapshot."""
        if not self.latest_path.exists():
            raise StateNotFoundError(f"No state recorded in {self.base_path}")
        return self._read_snapshot(self.latest_path)

    def save(self, graph: ResourceGraph, generation: int) -> StateSnapshot:
        """Record a new generation (history file first, then latest pointer)."""
        with self._lock:
            try:
                latest = self.load_latest().generation
            except StateNotFoundError:
                latest = 0
            if generation != latest + 1:
                raise StalePlanError(
                    f"Cannot record generation {generation}: "
                    f"latest recorded generation is {latest}"
                )

            snapshot = StateSnapshot.from_graph(graph, generation)
            content = snapshot.model_dump(mode="json")
            atomic_write_json(self._generation_path(generation), content)
            atomic_write_json(self.latest_path, content)

        logger.info(
            f"Saved state generation {generation} "
            f"(fingerprint {snapshot.fingerprint[:12]})"
        )
        return snapshot

    def history(self) -> List[int]:
        """Generations with a history file, oldest first."""
        directory = self.base_path / "generations"
        if not directory.exists():
            return []
        return sorted(
            int(item.stem) for item in directory.iterdir()
            if item.suffix == ".json" and item.stem.isdigit()
        )

    def load_generation(self, generation: int) -> Optional[StateSnapshot]:
        """Load a snapshot from history."""
        path = self._generation_path(generation)
        if not path.exists():
            return None
        return self._read_snapshot(path)

    # =========================================================================
    # PLAN AND RESULT ARTIFACTS
    # =========================================================================

    def save_plan(self, plan: Plan) -> str:
        """Save plan preview and return file path."""
        path = self.base_path / "plans" / f"{plan.plan_id}.json"
        atomic_write_json(path, plan.model_dump(mode="json"))
        logger.debug(f"Saved plan: {path}")
        return str(path)

    def load_plan(self, plan_id: str) -> Optional[Plan]:
        """Load a saved plan."""
        path = self.base_path / "plans" / f"{plan_id}.json"
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return Plan.model_validate(json.load(f))

    def list_plans(self) -> List[str]:
        """Get all saved plan IDs."""
        directory = self.base_path / "plans"
        if not directory.exists():
            return []
        return sorted(item.stem for item in directory.iterdir() if item.suffix == ".json")

    def save_result(self, result: ApplyResult) -> str:
        """Save apply result and return file path."""
        path = self.base_path / "results" / f"{result.plan_id}.json"
        atomic_write_json(path, result.model_dump(mode="json"))
        logger.debug(f"Saved apply result: {path}")
        return str(path)

    def load_result(self, plan_id: str) -> Optional[ApplyResult]:
        """Load an apply result."""
        path = self.base_path / "results" / f"{plan_id}.json"
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return ApplyResult.model_validate(json.load(f))


_storage: Optional[JsonStateStore] = None


def get_storage() -> JsonStateStore:
    """Get the application-wide storage instance (VAC_STATE_DIR, default ./state)."""
    global _storage
    if _storage is None:
        _storage = JsonStateStore(os.environ.get("VAC_STATE_DIR", "./state"))
    return _storage
