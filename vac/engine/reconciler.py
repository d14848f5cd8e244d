"""
Vehicle as Code - Reconciliation Engine

Wires validator, graph builder, diff engine, plan builder and plan
executor together around one state store and one vehicle adapter.
"""

from __future__ import annotations
from typing import Any, Callable, List, Optional
import logging
import threading

from vac.adapters.base import StateStore, VehicleAdapter
from vac.adapters.memory import InMemoryStateStore
from vac.adapters.simulated import SimulatedVehicleAdapter
from vac.engine.differ import DiffEngine
from vac.engine.executor import PlanExecutor
from vac.engine.graph import GraphBuilder
from vac.engine.planner import PlanBuilder
from vac.engine.validator import SchemaValidator, ValidationIssue
from vac.errors import CycleError, DependencyError, ValidationError
from vac.models import ApplyResult, DriftReport, Plan, ResourceGraph, StateSnapshot

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Facade over the declarative reconcile flow.

    Flow:
    1. plan(document): validate -> build graph -> diff vs latest state -> order
    2. apply(plan): staleness check -> sequential execution -> record state

    Applies are serialized: only one plan executes at a time, and the
    staleness check rejects any plan computed against older state.
    """

    def __init__(
        self,
        state_store: Optional[StateStore] = None,
        adapter: Optional[VehicleAdapter] = None,
        validator: Optional[SchemaValidator] = None,
    ):
        """
        Initialize engine.

        Args:
            state_store: Snapshot store (in-memory if omitted)
            adapter: Vehicle adapter (simulated if omitted)
            validator: Schema validator (default registry if omitted)
        """
        self.state_store = state_store or InMemoryStateStore()
        self.adapter = adapter or SimulatedVehicleAdapter()
        self.validator = validator or SchemaValidator()
        self.builder = GraphBuilder(self.validator)
        self.differ = DiffEngine(self.validator.registry)
        self.planner = PlanBuilder()
        self.executor = PlanExecutor(self.state_store, self.adapter)
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()

    def validate(self, document: Any) -> List[ValidationIssue]:
        """Validate a document without building anything."""
        return self.validator.validate(document)

    def check(self, document: Any) -> List[str]:
        """
        Run every check `plan` runs before diffing.

        Returns:
            Schema, dependency and cycle errors (empty if the document
            would produce a graph)
        """
        try:
            self.builder.compile(document)
        except (ValidationError, DependencyError, CycleError) as e:
            return e.errors
        return []

    def latest_snapshot(self) -> StateSnapshot:
        """Latest recorded snapshot, or the initial empty state."""
        return self.executor.load_base()

    def plan(self, document: Any) -> Plan:
        """
        Compute a plan for a raw configuration document.

        Raises:
            ValidationError: If the document does not match the schema
            DependencyError: If dependency references do not resolve
            CycleError: If dependency edges form a cycle
        """
        desired = self.builder.compile(document)
        return self.plan_graph(desired)

    def plan_graph(self, desired: ResourceGraph) -> Plan:
        """Compute a plan for an already built graph."""
        base = self.latest_snapshot()
        operations = self.differ.diff(desired, base.graph)
        return self.planner.build_plan(operations, desired, base)

    def apply(
        self,
        plan: Plan,
        progress_callback: Optional[Callable[[str, int, str], None]] = None,
    ) -> ApplyResult:
        """
        Apply a plan (single use).

        Raises:
            StalePlanError: If the plan was consumed or the state moved on
        """
        with self._lock:
            self.executor.set_progress_callback(progress_callback)
            return self.executor.execute(plan)

    def check_drift(self) -> DriftReport:
        """Compare the vehicle's live configuration with the latest snapshot."""
        recorded = self.latest_snapshot()
        live = self.adapter.live_graph()
        live_fingerprint = live.fingerprint()
        drifted = live_fingerprint != recorded.fingerprint

        operations = []
        if drifted:
            operations = self.planner.order(self.differ.diff(recorded.graph, live))
            self.logger.warning(
                f"Drift detected against generation {recorded.generation}: "
                f"{len(operations)} operations needed to reconcile"
            )

        return DriftReport(
            drifted=drifted,
            recorded_fingerprint=recorded.fingerprint,
            live_fingerprint=live_fingerprint,
            generation=recorded.generation,
            operations=operations,
        )
