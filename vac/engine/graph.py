"""
Vehicle as Code - Resource Graph Builder

Turns a validated configuration document into an immutable resource
graph: assigns path-based identities, resolves dependency references
into edges and rejects cyclic graphs.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple
import logging

from vac.errors import CycleError, DependencyError
from vac.kinds import KindRegistry
from vac.models import ResourceGraph, ResourceNode
from vac.engine.validator import ROOT_KIND, SchemaValidator, raw_dependencies

logger = logging.getLogger(__name__)

ADDRESS_SEPARATOR = "."

# DFS markers
_VISITING = 1
_VISITED = 2


def child_address(parent: str, name: str) -> str:
    return f"{parent}{ADDRESS_SEPARATOR}{name}"


class GraphBuilder:
    """
    Builds resource graphs from validated documents.

    Responsibilities:
    - Assign stable logical identity to each node
    - Resolve dependency references into direct edges
    - Detect cycles across dependency and parent/child edges
    """

    def __init__(self, validator: Optional[SchemaValidator] = None):
        """Initialize builder."""
        self.validator = validator or SchemaValidator()
        self.logger = logging.getLogger(__name__)

    def compile(self, document: Any) -> ResourceGraph:
        """
        Validate a raw document and build its graph.

        Raises:
            ValidationError: If the document does not match the schema
            DependencyError: If dependency references do not resolve
            CycleError: If dependency edges form a cycle
        """
        self.validator.validate_document(document)
        return self.build(document)

    def build(self, document: Dict[str, Any]) -> ResourceGraph:
        """
        Build a resource graph from a validated document.

        Args:
            document: Root vehicle node mapping (already validated)

        Returns:
            Immutable ResourceGraph

        Raises:
            DependencyError: If dependency references do not resolve
            CycleError: If the graph contains a cycle
        """
        entries: Dict[str, Dict[str, Any]] = {}
        self._collect(document, parent=None, entries=entries)
        root = document["name"]

        dependencies = self._resolve_dependencies(entries)

        cycles = self._find_cycles(entries, dependencies)
        if cycles:
            self.logger.info(f"Rejected graph with {len(cycles)} cycle(s)")
            raise CycleError("Dependency cycle detected", cycles=cycles)

        nodes = {
            address: ResourceNode(
                name=entry["name"],
                address=address,
                kind=entry["kind"],
                attributes=entry["attributes"],
                parent=entry["parent"],
                children=entry["children"],
                depends_on=dependencies[address],
            )
            for address, entry in entries.items()
        }

        graph = ResourceGraph(root=root, nodes=nodes)
        self.logger.debug(
            f"Built resource graph '{root}': {len(nodes)} nodes, "
            f"{len(graph.dependency_edges())} dependency edges"
        )
        return graph

    def _collect(
        self,
        raw: Dict[str, Any],
        parent: Optional[str],
        entries: Dict[str, Dict[str, Any]],
    ) -> str:
        """Flatten the document tree into address-keyed entries."""
        name = raw["name"]
        address = name if parent is None else child_address(parent, name)

        kind_name = raw.get("kind", ROOT_KIND if parent is None else None)
        kind = KindRegistry.get(kind_name)
        attributes = dict(raw.get("attributes") or {})
        if kind is not None:
            attributes = kind.normalize_attributes(attributes)
        entry = {
            "name": name,
            "kind": kind.KIND_NAME if kind else str(kind_name).lower(),
            "attributes": attributes,
            "parent": parent,
            "children": [],
            "references": raw_dependencies(raw),
        }
        entries[address] = entry

        for child in raw.get("children") or []:
            entry["children"].append(self._collect(child, address, entries))
        return address

    def _resolve_dependencies(
        self,
        entries: Dict[str, Dict[str, Any]],
    ) -> Dict[str, List[str]]:
        """
        Resolve references to addresses.

        A reference is either a full address or a bare node name that
        matches exactly one node of the graph.
        """
        by_name: Dict[str, List[str]] = {}
        for address, entry in entries.items():
            by_name.setdefault(entry["name"], []).append(address)

        resolved: Dict[str, List[str]] = {}
        errors: List[str] = []

        for address, entry in entries.items():
            targets: List[str] = []
            for reference in entry["references"]:
                if reference in entries:
                    target = reference
                else:
                    matches = by_name.get(reference, [])
                    if not matches:
                        errors.append(
                            f"{address}: dependency '{reference}' does not "
                            f"match any resource"
                        )
                        continue
                    if len(matches) > 1:
                        errors.append(
                            f"{address}: dependency '{reference}' is ambiguous, "
                            f"use one of {sorted(matches)}"
                        )
                        continue
                    target = matches[0]
                if target not in targets:
                    targets.append(target)
            resolved[address] = targets

        if errors:
            raise DependencyError("Unresolved dependency references", errors=errors)
        return resolved

    def _find_cycles(
        self,
        entries: Dict[str, Dict[str, Any]],
        dependencies: Dict[str, List[str]],
    ) -> List[List[str]]:
        """
        Depth-first search with visiting/visited markers.

        A node must come after its dependencies and after its parent,
        so both kinds of edges take part in the search.
        """
        edges: Dict[str, List[str]] = {}
        for address, entry in entries.items():
            targets = list(dependencies[address])
            if entry["parent"] is not None:
                targets.append(entry["parent"])
            edges[address] = sorted(set(targets))

        state: Dict[str, int] = {}
        stack: List[str] = []
        cycles: List[List[str]] = []
        seen: set = set()

        def visit(address: str) -> None:
            state[address] = _VISITING
            stack.append(address)
            for target in edges[address]:
                marker = state.get(target)
                if marker == _VISITING:
                    cycle = stack[stack.index(target):] + [target]
                    key = self._cycle_key(cycle)
                    if key not in seen:
                        seen.add(key)
                        cycles.append(cycle)
                elif marker is None:
                    visit(target)
            stack.pop()
            state[address] = _VISITED

        for address in sorted(edges):
            if address not in state:
                visit(address)

        return cycles

    @staticmethod
    def _cycle_key(cycle: List[str]) -> Tuple[str, ...]:
        """Rotation-independent key for de-duplicating cycles."""
        body = cycle[:-1]
        start = body.index(min(body))
        return tuple(body[start:] + body[:start])


# Singleton instance
builder = GraphBuilder()


def get_builder() -> GraphBuilder:
    """Get graph builder instance."""
    return builder


def compile_document(document: Any) -> ResourceGraph:
    """Validate and build a document with the default builder."""
    return builder.compile(document)
