"""
Vehicle as Code - Domain Models

Defines the Pydantic models for resource graphs, state snapshots,
change operations, plans, execution results and API payloads.
These models form the core data structures that flow through the
entire engine.
"""

from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import hashlib
import json
import math
import uuid

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class AttributeType(str, Enum):
    """Tagged variant of values an attribute may hold."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    MAPPING = "mapping"


class ChangeAction(str, Enum):
    """Kind of change applied to a single resource."""
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"


class OperationStatus(str, Enum):
    """Status of an individual operation in an apply run."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ApplyStatus(str, Enum):
    """Overall status of an apply run."""
    COMPLETED = "completed"
    FAILED = "failed"


def attribute_type_of(value: Any) -> Optional[AttributeType]:
    """
    Determine the attribute type of a value.

    Returns None for values outside the tagged variant (lists, None,
    objects, infinities and NaN). Nested mappings are checked recursively.
    """
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return AttributeType.BOOLEAN
    if isinstance(value, int):
        return AttributeType.NUMBER
    if isinstance(value, float):
        return AttributeType.NUMBER if math.isfinite(value) else None
    if isinstance(value, str):
        return AttributeType.STRING
    if isinstance(value, dict):
        for key, nested in value.items():
            if not isinstance(key, str) or attribute_type_of(nested) is None:
                return None
        return AttributeType.MAPPING
    return None


# =============================================================================
# RESOURCE GRAPH
# =============================================================================

class ResourceNode(BaseModel):
    """A typed, named unit of vehicle configuration."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Logical name, unique among siblings")
    address: str = Field(..., description="Path-based identity (e.g. MyCar.radar-1)")
    kind: str = Field(..., description="Registered resource kind")
    attributes: Dict[str, Any] = Field(default_factory=dict)
    parent: Optional[str] = None
    children: List[str] = Field(default_factory=list)
    depends_on: List[str] = Field(default_factory=list)

    def canonical(self) -> Dict[str, Any]:
        """Order-independent representation used for fingerprints and equality."""
        return {
            "name": self.name,
            "kind": self.kind,
            "attributes": self.attributes,
            "parent": self.parent,
            "children": sorted(self.children),
            "depends_on": sorted(self.depends_on),
        }


class ResourceGraph(BaseModel):
    """
    Immutable tree of resource nodes plus dependency edges.

    The root node is always of kind vehicle. An empty graph (no root)
    stands for "nothing applied yet".
    """
    model_config = ConfigDict(frozen=True)

    root: Optional[str] = None
    nodes: Dict[str, ResourceNode] = Field(default_factory=dict)

    @classmethod
    def empty(cls) -> ResourceGraph:
        return cls()

    @classmethod
    def from_nodes(cls, nodes: Dict[str, ResourceNode]) -> ResourceGraph:
        """
        Assemble a graph from loose nodes.

        Children lists are re-derived from parent links (keeping the
        existing order where possible) and the root is the parentless node.
        """
        children: Dict[str, List[str]] = {}
        for address in sorted(nodes):
            parent = nodes[address].parent
            if parent is not None:
                children.setdefault(parent, []).append(address)

        root = None
        result: Dict[str, ResourceNode] = {}
        for address, node in nodes.items():
            actual = children.get(address, [])
            ordered = [c for c in node.children if c in actual]
            ordered += [c for c in actual if c not in ordered]
            if ordered != node.children:
                node = node.model_copy(update={"children": ordered})
            result[address] = node
            if node.parent is None:
                root = address

        return cls(root=root, nodes=result)

    def is_empty(self) -> bool:
        return not self.nodes

    def __contains__(self, address: object) -> bool:
        return address in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, address: str) -> Optional[ResourceNode]:
        return self.nodes.get(address)

    def addresses(self) -> List[str]:
        return sorted(self.nodes)

    def children_of(self, address: str) -> List[ResourceNode]:
        node = self.nodes.get(address)
        if node is None:
            return []
        return [self.nodes[child] for child in node.children if child in self.nodes]

    def ancestors(self, address: str) -> List[str]:
        """Ancestor addresses, nearest first."""
        result = []
        node = self.nodes.get(address)
        while node is not None and node.parent is not None:
            result.append(node.parent)
            node = self.nodes.get(node.parent)
        return result

    def descendants(self, address: str) -> List[str]:
        """All descendant addresses in depth-first order."""
        result = []
        stack = list(reversed(self.nodes[address].children)) if address in self.nodes else []
        while stack:
            current = stack.pop()
            result.append(current)
            node = self.nodes.get(current)
            if node is not None:
                stack.extend(reversed(node.children))
        return result

    def dependents_of(self, address: str) -> List[str]:
        """Addresses of nodes that declare a dependency on the given node."""
        return sorted(
            node.address for node in self.nodes.values()
            if address in node.depends_on
        )

    def dependency_edges(self) -> List[tuple]:
        """(dependent, dependency) pairs, sorted."""
        return sorted(
            (node.address, dep)
            for node in self.nodes.values()
            for dep in node.depends_on
        )

    def canonical(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "nodes": {
                address: node.canonical()
                for address, node in sorted(self.nodes.items())
            },
        }

    def fingerprint(self) -> str:
        """SHA-256 over the canonicalized graph content."""
        payload = json.dumps(
            self.canonical(),
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


# =============================================================================
# STATE
# =============================================================================

class StateSnapshot(BaseModel):
    """A recorded resource graph with its generation and fingerprint."""
    graph: ResourceGraph = Field(default_factory=ResourceGraph)
    generation: int = Field(default=0, ge=0)
    fingerprint: str
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_graph(cls, graph: ResourceGraph, generation: int) -> StateSnapshot:
        return cls(
            graph=graph,
            generation=generation,
            fingerprint=graph.fingerprint(),
        )

    @classmethod
    def initial(cls) -> StateSnapshot:
        """The state before anything has been applied."""
        return cls.from_graph(ResourceGraph.empty(), 0)

    def is_consistent(self) -> bool:
        """True if the stored fingerprint matches the graph content."""
        return self.fingerprint == self.graph.fingerprint()


# =============================================================================
# CHANGES AND PLANS
# =============================================================================

class AttributeChange(BaseModel):
    """Before/after values of a single changed attribute."""
    model_config = ConfigDict(frozen=True)

    name: str
    before: Any = None
    after: Any = None


class ChangeOperation(BaseModel):
    """A typed change to a single resource."""
    model_config = ConfigDict(frozen=True)

    action: ChangeAction
    address: str
    kind: str
    before: Optional[ResourceNode] = None
    after: Optional[ResourceNode] = None
    changes: List[AttributeChange] = Field(default_factory=list)
    reason: Optional[str] = None

    # Assigned by the plan builder
    index: int = 0
    requires: List[str] = Field(default_factory=list)

    def describe(self) -> str:
        """One-line human-readable description."""
        symbol = {
            ChangeAction.CREATE: "+",
            ChangeAction.UPDATE: "~",
            ChangeAction.REPLACE: "-/+",
            ChangeAction.DELETE: "-",
        }[self.action]
        text = f"{symbol} {self.action.value} {self.kind} {self.address}"
        if self.reason:
            text += f" ({self.reason})"
        return text


class Plan(BaseModel):
    """
    Ordered, reviewable sequence of changes.

    Single-use: computed against one base snapshot and consumed
    exactly once by the plan executor.
    """
    plan_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    created_at: datetime = Field(default_factory=utcnow)
    base_fingerprint: str
    base_generation: int = 0
    operations: List[ChangeOperation] = Field(default_factory=list)
    target: ResourceGraph = Field(default_factory=ResourceGraph)
    consumed: bool = False

    def is_empty(self) -> bool:
        return not self.operations

    def counts(self) -> Dict[str, int]:
        counts = {action.value: 0 for action in ChangeAction}
        for operation in self.operations:
            counts[operation.action.value] += 1
        return counts


class OperationResult(BaseModel):
    """Outcome of applying a single change operation."""
    address: str
    action: ChangeAction
    success: bool
    error: Optional[str] = None
    message: str = ""
    status: OperationStatus = OperationStatus.PENDING
    index: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0


class ApplyResult(BaseModel):
    """Summary of a plan execution."""
    plan_id: str
    status: ApplyStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    total_operations: int = 0
    completed_operations: int = 0
    failed_operations: int = 0
    skipped_operations: int = 0

    results: List[OperationResult] = Field(default_factory=list)
    failed_operation: Optional[str] = None
    snapshot: Optional[StateSnapshot] = None
    partial_graph: Optional[ResourceGraph] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ApplyStatus.COMPLETED

    def raise_for_status(self) -> None:
        """Raise OperationFailure if the run did not complete."""
        if self.succeeded:
            return
        from vac.errors import OperationFailure

        failed = next(
            (r for r in self.results if r.status == OperationStatus.FAILED),
            None,
        )
        raise OperationFailure(
            f"Operation failed: {failed.error if failed else 'unknown error'}",
            address=self.failed_operation or "",
            result=self,
        )


class DriftReport(BaseModel):
    """Comparison of the live vehicle state with the last recorded snapshot."""
    drifted: bool
    recorded_fingerprint: str
    live_fingerprint: str
    generation: int = 0
    operations: List[ChangeOperation] = Field(default_factory=list)


# =============================================================================
# API MODELS
# =============================================================================

class DocumentRequest(BaseModel):
    """Request carrying a vehicle configuration document."""
    config_yaml: str = Field(..., description="YAML (or JSON) configuration content")


class ValidateResponse(BaseModel):
    """Result of validating a document."""
    valid: bool
    errors: List[str] = Field(default_factory=list)


class PlanResponse(BaseModel):
    """Plan preview returned to reviewers before apply."""
    plan_id: str
    base_fingerprint: str
    base_generation: int
    target_fingerprint: str
    counts: Dict[str, int] = Field(default_factory=dict)
    operations: List[ChangeOperation] = Field(default_factory=list)
    preview: str = ""


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
