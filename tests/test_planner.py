"""
Tests for plan ordering and rendering.
"""

import pytest

from vac.engine.differ import diff
from vac.engine.graph import compile_document
from vac.engine.planner import PlanBuilder, render_plan
from vac.errors import PlanError
from vac.models import (
    ChangeAction,
    ChangeOperation,
    ResourceGraph,
    ResourceNode,
    StateSnapshot,
)


def child(document, name):
    return next(c for c in document["children"] if c["name"] == name)


def plan_for(desired, current=None):
    current = current if current is not None else ResourceGraph.empty()
    base = StateSnapshot.from_graph(current, 1 if len(current) else 0)
    return PlanBuilder().build_plan(diff(desired, current), desired, base)


def position(plan, address):
    return next(op.index for op in plan.operations if op.address == address)


def with_front_camera(document, camera_type="Camera", lens=True):
    front = {"name": "front", "kind": "sensor", "attributes": {"type": camera_type}}
    if lens:
        front["children"] = [{"name": "lens", "kind": "sensor", "attributes": {"type": "Camera"}}]
    document["children"].append(front)
    return document


@pytest.fixture
def builder():
    return PlanBuilder()


# ── Creation Order ───────────────────────────────────────────────────


class TestCreateOrder:
    def test_initial_deploy(self, graph):
        plan = plan_for(graph)

        assert [op.address for op in plan.operations] == [
            "MyCar",
            "MyCar.engine",
            "MyCar.radar-1",
            "MyCar.throttle-1",
            "MyCar.transmission",
        ]
        assert [op.index for op in plan.operations] == [1, 2, 3, 4, 5]
        assert plan.operations[0].requires == []
        assert all(op.requires == ["MyCar"] for op in plan.operations[1:])
        assert plan.base_fingerprint == ResourceGraph.empty().fingerprint()
        assert plan.base_generation == 0
        assert plan.target == graph
        assert not plan.consumed

    def test_dependency_precedes_dependent(self, document):
        child(document, "radar-1")["depends_on"] = "throttle-1"
        plan = plan_for(compile_document(document))
        assert [op.address for op in plan.operations] == [
            "MyCar",
            "MyCar.engine",
            "MyCar.throttle-1",
            "MyCar.radar-1",
            "MyCar.transmission",
        ]
        radar = plan.operations[position(plan, "MyCar.radar-1") - 1]
        assert radar.requires == ["MyCar", "MyCar.throttle-1"]

    def test_every_edge_is_respected(self, document):
        child(document, "engine")["depends_on"] = ["transmission", "throttle-1"]
        child(document, "transmission")["depends_on"] = "radar-1"
        with_front_camera(document)
        child(document, "radar-1")["depends_on"] = "MyCar.front.lens"
        graph = compile_document(document)

        plan = plan_for(graph)

        for dependent, dependency in graph.dependency_edges():
            assert position(plan, dependency) < position(plan, dependent)
        for node in graph.nodes.values():
            if node.parent:
                assert position(plan, node.parent) < position(plan, node.address)

    def test_created_dependency_precedes_update(self, document, graph):
        document["children"].append(
            {"name": "lidar-1", "kind": "sensor", "attributes": {"type": "Lidar"}}
        )
        child(document, "throttle-1")["depends_on"] = "lidar-1"

        plan = plan_for(compile_document(document), graph)

        assert [(op.action, op.address) for op in plan.operations] == [
            (ChangeAction.CREATE, "MyCar.lidar-1"),
            (ChangeAction.UPDATE, "MyCar.throttle-1"),
        ]


# ── Teardown Order ───────────────────────────────────────────────────


class TestTeardownOrder:
    def test_children_deleted_before_parent(self, make_document):
        current = compile_document(with_front_camera(make_document()))
        plan = plan_for(compile_document(make_document()), current)
        assert [op.address for op in plan.operations] == ["MyCar.front.lens", "MyCar.front"]
        assert all(op.action == ChangeAction.DELETE for op in plan.operations)

    def test_dependent_deleted_before_dependency(self, document):
        child(document, "throttle-1")["depends_on"] = "radar-1"
        current = compile_document(document)
        document["children"] = [
            c for c in document["children"] if c["name"] not in ("radar-1", "throttle-1")
        ]

        plan = plan_for(compile_document(document), current)

        assert [op.address for op in plan.operations] == ["MyCar.throttle-1", "MyCar.radar-1"]

    def test_deletes_run_first(self, make_document):
        current = compile_document(with_front_camera(make_document()))
        document = make_document()
        document["children"].append(
            {"name": "lidar-1", "kind": "sensor", "attributes": {"type": "Lidar"}}
        )
        child(document, "engine")["attributes"]["horsepower"] = 480

        plan = plan_for(compile_document(document), current)

        assert [op.action for op in plan.operations] == [
            ChangeAction.DELETE,
            ChangeAction.DELETE,
            ChangeAction.UPDATE,
            ChangeAction.CREATE,
        ]


# ── Replacement Order ────────────────────────────────────────────────


class TestReplaceOrder:
    def test_removed_child_deleted_before_parent_replace(self, make_document):
        current = compile_document(with_front_camera(make_document()))
        desired = compile_document(
            with_front_camera(make_document(), camera_type="Lidar", lens=False)
        )

        plan = plan_for(desired, current)

        assert [(op.action, op.address) for op in plan.operations] == [
            (ChangeAction.DELETE, "MyCar.front.lens"),
            (ChangeAction.REPLACE, "MyCar.front"),
        ]
        assert plan.operations[1].requires == ["MyCar.front.lens"]

    def test_parent_replaced_before_children(self, make_document):
        current = compile_document(with_front_camera(make_document()))
        desired = compile_document(with_front_camera(make_document(), camera_type="Lidar"))

        plan = plan_for(desired, current)

        assert [op.address for op in plan.operations] == ["MyCar.front", "MyCar.front.lens"]
        assert plan.operations[1].requires == ["MyCar.front"]

    def test_engine_swap(self, make_document):
        current = compile_document(make_document("V8"))
        plan = plan_for(compile_document(make_document("Electric")), current)
        assert len(plan.operations) == 1
        assert plan.operations[0].action == ChangeAction.REPLACE
        assert plan.base_generation == 1
        assert plan.base_fingerprint == current.fingerprint()


# ── Errors ───────────────────────────────────────────────────────────


def create(address, depends_on=()):
    node = ResourceNode(
        name=address.rsplit(".", 1)[-1],
        address=address,
        kind="sensor",
        attributes={"type": "Radar"},
        parent="MyCar",
        depends_on=list(depends_on),
    )
    return ChangeOperation(action=ChangeAction.CREATE, address=address, kind="sensor", after=node)


class TestErrors:
    def test_cyclic_operations(self, builder):
        operations = [
            create("MyCar.a", depends_on=["MyCar.b"]),
            create("MyCar.b", depends_on=["MyCar.a"]),
        ]
        with pytest.raises(PlanError) as exc:
            builder.order(operations)
        assert exc.value.errors == ["MyCar.a", "MyCar.b"]

    def test_duplicate_operations(self, builder):
        with pytest.raises(PlanError):
            builder.order([create("MyCar.a"), create("MyCar.a")])

    def test_dependency_outside_plan_is_ignored(self, builder):
        ordered = builder.order([create("MyCar.a", depends_on=["MyCar.existing"])])
        assert ordered[0].requires == []


# ── Determinism and Rendering ────────────────────────────────────────


class TestRendering:
    def test_order_is_deterministic(self, make_document):
        current = compile_document(with_front_camera(make_document()))
        document = make_document("Electric")
        document["children"].append(
            {"name": "lidar-1", "kind": "sensor", "attributes": {"type": "Lidar"}}
        )
        desired = compile_document(document)

        first = plan_for(desired, current)
        second = plan_for(desired, current)

        assert first.plan_id != second.plan_id
        assert [op.model_dump_json() for op in first.operations] == [
            op.model_dump_json() for op in second.operations
        ]

    def test_render_plan(self, make_document):
        current = compile_document(make_document("V8"))
        document = make_document("Electric")
        document["children"].append(
            {"name": "lidar-1", "kind": "sensor", "attributes": {"type": "Lidar"}}
        )
        plan = plan_for(compile_document(document), current)

        text = render_plan(plan)

        assert text.startswith(f"Plan {plan.plan_id} (base generation 1")
        assert "-/+ replace engine MyCar.engine (type changed from 'V8' to 'Electric')" in text
        assert "type: 'V8' -> 'Electric'" in text
        assert "+ create sensor MyCar.lidar-1" in text
        assert "type: 'Lidar'" in text
        assert text.endswith("Plan: 1 to create, 0 to update, 1 to replace, 0 to delete.")

    def test_render_empty_plan(self, graph):
        plan = plan_for(graph, graph)
        assert plan.is_empty()
        assert "No changes" in render_plan(plan)
        assert plan.counts() == {"create": 0, "update": 0, "replace": 0, "delete": 0}
