"""
Vehicle as Code - Diff Engine

Compares a desired resource graph against the last applied graph and
produces the change operations (create/update/replace/delete) that
reconcile them. Nodes are matched by logical address, never by
position, so reordering a document never produces changes.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Type
import json
import logging

from vac.kinds import KindRegistry
from vac.models import (
    AttributeChange,
    ChangeAction,
    ChangeOperation,
    ResourceGraph,
    ResourceNode,
)

logger = logging.getLogger(__name__)


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def attribute_changes(before: ResourceNode, after: ResourceNode) -> List[AttributeChange]:
    """
    Compute attribute-by-attribute differences between two nodes.

    Dependency differences are reported under the `depends_on`
    pseudo-attribute.
    """
    changes = []
    for name in sorted(set(before.attributes) | set(after.attributes)):
        old = before.attributes.get(name)
        new = after.attributes.get(name)
        if name not in before.attributes or name not in after.attributes or (
            _canonical(old) != _canonical(new)
        ):
            changes.append(AttributeChange(name=name, before=old, after=new))

    old_deps = sorted(before.depends_on)
    new_deps = sorted(after.depends_on)
    if old_deps != new_deps:
        changes.append(AttributeChange(name="depends_on", before=old_deps, after=new_deps))
    return changes


class DiffEngine:
    """
    Computes change operations between two resource graphs.

    Decision per address:
    - only in desired: create
    - only in current: delete
    - in both, kind or an immutable attribute changed: replace
      (cascades to every descendant present in both graphs)
    - in both, other attributes or dependencies changed: update
    """

    def __init__(self, registry: Type[KindRegistry] = KindRegistry):
        """Initialize diff engine."""
        self.registry = registry
        self.logger = logging.getLogger(__name__)

    def diff(
        self,
        desired: ResourceGraph,
        current: ResourceGraph,
    ) -> List[ChangeOperation]:
        """
        Compute operations that turn `current` into `desired`.

        Args:
            desired: Graph built from the configuration document
            current: Graph recorded by the last successful apply

        Returns:
            Operations sorted by address
        """
        replace_reasons: Dict[str, Optional[str]] = {}
        operations: List[ChangeOperation] = []

        for address in sorted(set(desired.nodes) | set(current.nodes)):
            wanted = desired.get(address)
            existing = current.get(address)

            if existing is None:
                operations.append(ChangeOperation(
                    action=ChangeAction.CREATE,
                    address=address,
                    kind=wanted.kind,
                    after=wanted,
                ))
            elif wanted is None:
                operations.append(ChangeOperation(
                    action=ChangeAction.DELETE,
                    address=address,
                    kind=existing.kind,
                    before=existing,
                ))
            else:
                changes = attribute_changes(existing, wanted)
                reason = self._replace_reason(address, desired, current, replace_reasons)
                if reason is not None:
                    operations.append(ChangeOperation(
                        action=ChangeAction.REPLACE,
                        address=address,
                        kind=wanted.kind,
                        before=existing,
                        after=wanted,
                        changes=changes,
                        reason=reason,
                    ))
                elif changes:
                    operations.append(ChangeOperation(
                        action=ChangeAction.UPDATE,
                        address=address,
                        kind=wanted.kind,
                        before=existing,
                        after=wanted,
                        changes=changes,
                    ))

        self.logger.debug(
            f"Diff computed: {len(operations)} operations "
            f"({len(desired)} desired vs {len(current)} current nodes)"
        )
        return operations

    def _own_replace_reason(
        self,
        wanted: ResourceNode,
        existing: ResourceNode,
    ) -> Optional[str]:
        if wanted.kind != existing.kind:
            return f"kind changed from {existing.kind} to {wanted.kind}"

        kind = self.registry.get(wanted.kind)
        if kind is None:
            return None
        for name in sorted(set(wanted.attributes) | set(existing.attributes)):
            if not kind.is_immutable(name):
                continue
            old = existing.attributes.get(name)
            new = wanted.attributes.get(name)
            if _canonical(old) != _canonical(new):
                return f"{name} changed from {old!r} to {new!r}"
        return None

    def _replace_reason(
        self,
        address: str,
        desired: ResourceGraph,
        current: ResourceGraph,
        memo: Dict[str, Optional[str]],
    ) -> Optional[str]:
        """Replace reason for a node present in both graphs, if any."""
        if address in memo:
            return memo[address]

        wanted = desired.nodes[address]
        reason = self._own_replace_reason(wanted, current.nodes[address])
        parent = wanted.parent
        if reason is None and parent is not None and parent in current:
            if self._replace_reason(parent, desired, current, memo) is not None:
                reason = f"parent {parent} is replaced"

        memo[address] = reason
        return reason


def apply_operations(
    graph: ResourceGraph,
    operations: List[ChangeOperation],
) -> ResourceGraph:
    """
    Compute the graph that results from applying operations to `graph`.

    Children lists are re-derived from parent links, so nodes left
    untouched by the operations still reference their new children.
    """
    nodes: Dict[str, ResourceNode] = dict(graph.nodes)
    for operation in operations:
        if operation.action == ChangeAction.DELETE:
            nodes.pop(operation.address, None)
        else:
            nodes[operation.address] = operation.after

    return ResourceGraph.from_nodes(nodes)


# Singleton instance
engine = DiffEngine()


def diff(desired: ResourceGraph, current: ResourceGraph) -> List[ChangeOperation]:
    """Diff two graphs with the default engine."""
    return engine.diff(desired, current)
