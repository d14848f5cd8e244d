"""
Vehicle as Code - Plan Builder

Orders change operations into an executable plan.
Respects dependency edges and parent/child structure, and attaches
the base snapshot so stale plans can be rejected at apply time.
"""

from __future__ import annotations
from typing import Dict, List, Set
import heapq
import logging

from vac.errors import PlanError
from vac.models import (
    ChangeAction,
    ChangeOperation,
    Plan,
    ResourceGraph,
    StateSnapshot,
)

logger = logging.getLogger(__name__)


class PlanBuilder:
    """
    Creates plans from change operations.

    Ordering rules (A before B):
    - dependency: a create/update/replace of a dependency comes before
      the create/update/replace of the node depending on it
    - structure: a parent's create/replace comes before its children's
      create/update/replace
    - teardown: a child's delete comes before its parent's delete/replace,
      and a dependent's delete comes before its dependency's delete

    Ties are broken by action priority (delete, replace, update, create)
    and then lexicographically by address, so identical inputs always
    produce identical plans.
    """

    ACTION_PRIORITY = {
        ChangeAction.DELETE: 0,
        ChangeAction.REPLACE: 1,
        ChangeAction.UPDATE: 2,
        ChangeAction.CREATE: 3,
    }

    # Actions that leave the node present afterwards
    PROVISIONING = {ChangeAction.CREATE, ChangeAction.UPDATE, ChangeAction.REPLACE}

    def __init__(self):
        """Initialize plan builder."""
        self.logger = logging.getLogger(__name__)

    def build_plan(
        self,
        operations: List[ChangeOperation],
        desired: ResourceGraph,
        base: StateSnapshot,
    ) -> Plan:
        """
        Create a plan from diff operations.

        Args:
            operations: Operations produced by the diff engine
            desired: Graph the plan converges to
            base: Snapshot the operations were computed against

        Returns:
            Plan with ordered, indexed operations

        Raises:
            PlanError: If the ordering constraints form a cycle
        """
        ordered = self.order(operations)
        plan = Plan(
            base_fingerprint=base.fingerprint,
            base_generation=base.generation,
            operations=ordered,
            target=desired,
        )

        counts = plan.counts()
        self.logger.info(
            f"Created plan {plan.plan_id}: {len(ordered)} operations "
            f"({counts['create']} create, {counts['update']} update, "
            f"{counts['replace']} replace, {counts['delete']} delete) "
            f"against generation {base.generation}"
        )
        return plan

    def order(self, operations: List[ChangeOperation]) -> List[ChangeOperation]:
        """
        Topologically sort operations (Kahn's algorithm with a priority heap).

        Returns:
            New operation objects with `index` and `requires` assigned
        """
        by_address: Dict[str, ChangeOperation] = {}
        for operation in operations:
            if operation.address in by_address:
                raise PlanError(
                    "Multiple operations for one resource",
                    errors=[operation.address],
                )
            by_address[operation.address] = operation

        requires = self._constraints(by_address)

        dependents: Dict[str, List[str]] = {address: [] for address in by_address}
        indegree: Dict[str, int] = {}
        for address, prerequisites in requires.items():
            indegree[address] = len(prerequisites)
            for prerequisite in prerequisites:
                dependents[prerequisite].append(address)

        heap = [
            self._heap_key(by_address[address])
            for address, count in indegree.items()
            if count == 0
        ]
        heapq.heapify(heap)

        result: List[ChangeOperation] = []
        while heap:
            _, address = heapq.heappop(heap)
            result.append(by_address[address].model_copy(update={
                "index": len(result) + 1,
                "requires": sorted(requires[address]),
            }))
            for dependent in dependents[address]:
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    heapq.heappush(heap, self._heap_key(by_address[dependent]))

        if len(result) != len(by_address):
            blocked = sorted(a for a, count in indegree.items() if count > 0)
            self.logger.error(f"Unorderable operations: {blocked}")
            raise PlanError("Operations cannot be ordered (cycle)", errors=blocked)

        return result

    def _heap_key(self, operation: ChangeOperation) -> tuple:
        return (self.ACTION_PRIORITY[operation.action], operation.address)

    def _constraints(
        self,
        by_address: Dict[str, ChangeOperation],
    ) -> Dict[str, Set[str]]:
        """Map each address to the addresses whose operations must run first."""
        requires: Dict[str, Set[str]] = {address: set() for address in by_address}

        def before(first: str, then: str) -> None:
            if first in by_address and then in by_address and first != then:
                requires[then].add(first)

        for address, operation in by_address.items():
            if operation.action in self.PROVISIONING:
                node = operation.after
                for dependency in node.depends_on:
                    other = by_address.get(dependency)
                    if other is not None and other.action in self.PROVISIONING:
                        before(dependency, address)
                parent = by_address.get(node.parent) if node.parent else None
                if parent is not None and parent.action in (
                    ChangeAction.CREATE,
                    ChangeAction.REPLACE,
                ):
                    before(parent.address, address)

            if operation.action == ChangeAction.DELETE:
                node = operation.before
                parent = by_address.get(node.parent) if node.parent else None
                if parent is not None and parent.action in (
                    ChangeAction.DELETE,
                    ChangeAction.REPLACE,
                ):
                    before(address, parent.address)
                for dependency in node.depends_on:
                    other = by_address.get(dependency)
                    if other is not None and other.action == ChangeAction.DELETE:
                        before(address, dependency)

        return requires


def render_plan(plan: Plan) -> str:
    """Render a plan as human-readable text for review."""
    lines = [
        f"Plan {plan.plan_id} (base generation {plan.base_generation}, "
        f"fingerprint {plan.base_fingerprint[:12]})"
    ]
    if plan.is_empty():
        lines.append("  No changes. Vehicle configuration is up to date.")
    for operation in plan.operations:
        lines.append(f"  {operation.index:>3}. {operation.describe()}")
        if operation.action == ChangeAction.CREATE:
            for name, value in sorted(operation.after.attributes.items()):
                lines.append(f"         {name}: {value!r}")
        for change in operation.changes:
            lines.append(f"         {change.name}: {change.before!r} -> {change.after!r}")

    counts = plan.counts()
    lines.append(
        f"Plan: {counts['create']} to create, {counts['update']} to update, "
        f"{counts['replace']} to replace, {counts['delete']} to delete."
    )
    return "\n".join(lines)


# Singleton instance
planner = PlanBuilder()


def get_planner() -> PlanBuilder:
    """Get plan builder instance."""
    return planner
