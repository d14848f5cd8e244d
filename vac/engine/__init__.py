"""
Vehicle as Code - Engine Package

Declarative state reconciliation engine:
- Validator: Checks documents against the resource kind schema
- Graph: Builds immutable resource graphs with dependency edges
- Differ: Computes change operations between graphs
- Planner: Orders operations into executable plans
- Executor: Applies plans through a vehicle adapter
- Reconciler: Facade wiring all of the above together
"""

from vac.engine.validator import SchemaValidator, ValidationIssue
from vac.engine.graph import GraphBuilder, compile_document
from vac.engine.differ import DiffEngine, apply_operations, diff
from vac.engine.planner import PlanBuilder, render_plan
from vac.engine.executor import PlanExecutor
from vac.engine.reconciler import ReconciliationEngine

__all__ = [
    "SchemaValidator",
    "ValidationIssue",
    "GraphBuilder",
    "compile_document",
    "DiffEngine",
    "apply_operations",
    "diff",
    "PlanBuilder",
    "render_plan",
    "PlanExecutor",
    "ReconciliationEngine",
]
