"""
Vehicle as Code - Plan Executor

Executes plans against a vehicle adapter.
Handles the staleness check, strictly sequential fail-fast execution
and recording of the new state snapshot.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Callable, List, Optional
import logging

from vac.adapters.base import StateStore, VehicleAdapter
from vac.engine.differ import apply_operations
from vac.errors import StalePlanError, StateNotFoundError
from vac.models import (
    ApplyResult,
    ApplyStatus,
    ChangeOperation,
    OperationResult,
    OperationStatus,
    Plan,
    StateSnapshot,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PlanExecutor:
    """
    Executes plans operation by operation.

    Responsibilities:
    - Reject consumed plans and plans computed against outdated state
    - Apply operations strictly in plan order, never in parallel
    - Stop on the first failure and report the rest as skipped
    - Record the target graph as the next generation on success

    Error Handling:
    - Each operation is wrapped in try/except
    - A failed operation stops the run; nothing is retried or rolled back
    - Partially applied state is reported, never recorded
    """

    def __init__(self, state_store: StateStore, adapter: VehicleAdapter):
        """
        Initialize executor.

        Args:
            state_store: Store holding the applied snapshots
            adapter: Vehicle adapter that performs operations
        """
        self.state_store = state_store
        self.adapter = adapter
        self.logger = logging.getLogger(__name__)
        self._progress_callback: Optional[Callable[[str, int, str], None]] = None

    def set_progress_callback(self, callback: Callable[[str, int, str], None]) -> None:
        """
        Set callback for progress updates.

        Args:
            callback: Function(plan_id, percent, current_operation)
        """
        self._progress_callback = callback

    def _report_progress(self, plan_id: str, percent: int, current: str) -> None:
        """Report progress via callback if set."""
        if self._progress_callback:
            self._progress_callback(plan_id, percent, current)

    def load_base(self) -> StateSnapshot:
        """Latest snapshot, or the initial empty state on the first run."""
        try:
            return self.state_store.load_latest()
        except StateNotFoundError:
            return StateSnapshot.initial()

    def check_plan(self, plan: Plan, latest: StateSnapshot) -> None:
        """
        Verify a plan may still be applied.

        Raises:
            StalePlanError: If the plan was consumed or the state moved on
        """
        if plan.consumed:
            raise StalePlanError(
                f"Plan {plan.plan_id} has already been applied; compute a new plan"
            )
        if (
            latest.fingerprint != plan.base_fingerprint
            or latest.generation != plan.base_generation
        ):
            raise StalePlanError(
                f"Plan {plan.plan_id} is stale: computed against generation "
                f"{plan.base_generation} ({plan.base_fingerprint[:12]}), "
                f"latest is generation {latest.generation} "
                f"({latest.fingerprint[:12]})"
            )

    def execute(self, plan: Plan) -> ApplyResult:
        """
        Execute a plan.

        Args:
            plan: Plan produced by the plan builder

        Returns:
            ApplyResult with per-operation outcomes

        Raises:
            StalePlanError: Before any operation runs, if the plan is stale
        """
        latest = self.load_base()
        self.check_plan(plan, latest)
        plan.consumed = True

        started_at = _now()
        total = len(plan.operations)
        result = ApplyResult(
            plan_id=plan.plan_id,
            status=ApplyStatus.COMPLETED,
            started_at=started_at,
            total_operations=total,
        )

        self.logger.info(f"Applying plan {plan.plan_id} with {total} operations")

        applied: List[ChangeOperation] = []
        stop_reason: Optional[str] = None
        if total and not self.adapter.connect():
            stop_reason = f"Connection to vehicle {self.adapter.vehicle_id} failed"

        try:
            for i, operation in enumerate(plan.operations):
                percent = int((i / total) * 100)
                self._report_progress(plan.plan_id, percent, operation.address)

                if result.failed_operation is not None:
                    result.results.append(OperationResult(
                        address=operation.address,
                        action=operation.action,
                        success=False,
                        index=operation.index,
                        status=OperationStatus.SKIPPED,
                        error="Skipped due to previous failure",
                    ))
                    result.skipped_operations += 1
                    continue

                self.logger.info(
                    f"Executing operation {i + 1}/{total}: {operation.describe()}"
                )
                outcome = self._execute_operation(operation, stop_reason)
                result.results.append(outcome)

                if outcome.success:
                    applied.append(operation)
                    result.completed_operations += 1
                else:
                    result.failed_operations += 1
                    result.failed_operation = operation.address
                    self.logger.error(
                        f"Operation failed: {operation.address} - {outcome.error}"
                    )
        finally:
            if total:
                self._cleanup()

        completed_at = _now()
        result.completed_at = completed_at
        result.duration_seconds = (completed_at - started_at).total_seconds()

        if result.failed_operation is None:
            if plan.is_empty():
                result.snapshot = latest
            else:
                result.snapshot = self.state_store.save(plan.target, latest.generation + 1)
        else:
            result.status = ApplyStatus.FAILED
            result.partial_graph = apply_operations(latest.graph, applied)

        self._report_progress(plan.plan_id, 100, "Complete")
        self.logger.info(
            f"Plan {plan.plan_id} {result.status.value}: "
            f"{result.completed_operations}/{total} applied, "
            f"{result.failed_operations} failed, {result.skipped_operations} skipped"
        )
        return result

    def _execute_operation(
        self,
        operation: ChangeOperation,
        stop_reason: Optional[str] = None,
    ) -> OperationResult:
        """Apply a single operation and stamp timing and status."""
        started_at = _now()
        if stop_reason is not None:
            outcome = OperationResult(
                address=operation.address,
                action=operation.action,
                success=False,
                error=stop_reason,
            )
        else:
            try:
                outcome = self.adapter.apply(operation)
            except Exception as e:
                self.logger.exception(f"Operation error: {operation.address}")
                outcome = OperationResult(
                    address=operation.address,
                    action=operation.action,
                    success=False,
                    error=str(e),
                )

        completed_at = _now()
        return outcome.model_copy(update={
            "index": operation.index,
            "status": OperationStatus.COMPLETED if outcome.success else OperationStatus.FAILED,
            "started_at": started_at,
            "completed_at": completed_at,
            "duration_seconds": (completed_at - started_at).total_seconds(),
        })

    def _cleanup(self) -> None:
        """Disconnect the adapter after a run."""
        try:
            self.adapter.disconnect()
        except Exception as e:
            self.logger.warning(f"Error disconnecting vehicle {self.adapter.vehicle_id}: {e}")
