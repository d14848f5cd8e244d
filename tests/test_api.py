"""
Tests for the HTTP API.
"""

import pytest
import yaml
from fastapi.testclient import TestClient

from vac import main
from vac.main import app, get_engine


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    main.pending_plans.clear()
    main.applied_plans.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    main.pending_plans.clear()
    main.applied_plans.clear()


@pytest.fixture
def config_yaml(document):
    return yaml.safe_dump(document)


def create_plan(client, config_yaml):
    response = client.post("/plans", json={"config_yaml": config_yaml})
    assert response.status_code == 201, response.text
    return response.json()


class TestHealth:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "Vehicle as Code"

    def test_health(self, client):
        response = client.get("/health")
        assert response.json()["status"] == "healthy"


class TestValidate:
    def test_valid(self, client, config_yaml):
        response = client.post("/validate", json={"config_yaml": config_yaml})
        assert response.json() == {"valid": True, "errors": []}

    def test_invalid(self, client, document):
        del document["children"][0]["attributes"]["type"]
        response = client.post("/validate", json={"config_yaml": yaml.safe_dump(document)})
        body = response.json()
        assert not body["valid"]
        assert body["errors"] == ["MyCar.engine: missing required attribute 'type'"]

    def test_unresolved_dependency(self, client, document):
        document["children"][3]["depends_on"] = "nope"
        config = yaml.safe_dump(document)

        body = client.post("/validate", json={"config_yaml": config}).json()

        assert not body["valid"]
        assert body["errors"] == [
            "MyCar.throttle-1: dependency 'nope' does not match any resource"
        ]
        assert client.post("/plans", json={"config_yaml": config}).status_code == 400

    def test_dependency_cycle(self, client, document):
        document["children"][2]["depends_on"] = "throttle-1"
        document["children"][3]["depends_on"] = "radar-1"

        body = client.post("/validate", json={"config_yaml": yaml.safe_dump(document)}).json()

        assert not body["valid"]
        assert body["errors"] == ["MyCar.radar-1 -> MyCar.throttle-1 -> MyCar.radar-1"]

    def test_syntax_error(self, client):
        response = client.post("/validate", json={"config_yaml": "name: [oops"})
        assert response.status_code == 200
        assert not response.json()["valid"]


class TestPlans:
    def test_create_plan(self, client, config_yaml):
        body = create_plan(client, config_yaml)

        assert body["counts"] == {"create": 5, "update": 0, "replace": 0, "delete": 0}
        assert body["base_generation"] == 0
        assert [op["address"] for op in body["operations"]][0] == "MyCar"
        assert "Plan: 5 to create" in body["preview"]

    def test_get_plan(self, client, config_yaml):
        plan_id = create_plan(client, config_yaml)["plan_id"]
        response = client.get(f"/plans/{plan_id}")
        assert response.status_code == 200
        assert response.json()["plan_id"] == plan_id

    def test_invalid_document_rejected(self, client):
        response = client.post("/plans", json={"config_yaml": "name: MyCar\nchildren: 3\n"})
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["message"] == "Configuration validation failed"
        assert detail["errors"] == ["MyCar: 'children' must be a list"]

    def test_cycle_rejected(self, client, document):
        document["children"][2]["depends_on"] = "throttle-1"
        document["children"][3]["depends_on"] = "radar-1"
        response = client.post("/plans", json={"config_yaml": yaml.safe_dump(document)})
        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "Dependency cycle detected"

    def test_unknown_plan(self, client):
        assert client.get("/plans/missing").status_code == 404
        assert client.post("/plans/missing/apply").status_code == 404


class TestApply:
    def test_apply_then_state(self, client, config_yaml, graph):
        assert client.get("/state").status_code == 404

        plan_id = create_plan(client, config_yaml)["plan_id"]
        response = client.post(f"/plans/{plan_id}/apply")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["completed_operations"] == 5

        state = client.get("/state").json()
        assert state["generation"] == 1
        assert state["fingerprint"] == graph.fingerprint()

    def test_apply_twice(self, client, config_yaml):
        plan_id = create_plan(client, config_yaml)["plan_id"]
        client.post(f"/plans/{plan_id}/apply")

        response = client.post(f"/plans/{plan_id}/apply")

        assert response.status_code == 409

    def test_stale_plan(self, client, make_document):
        first = create_plan(client, yaml.safe_dump(make_document("V8")))
        second = create_plan(client, yaml.safe_dump(make_document("Hybrid")))
        client.post(f"/plans/{first['plan_id']}/apply")

        response = client.post(f"/plans/{second['plan_id']}/apply")

        assert response.status_code == 409
        assert "stale" in response.json()["detail"]

    def test_stale_plan_is_discarded(self, client, make_document):
        first = create_plan(client, yaml.safe_dump(make_document("V8")))
        second = create_plan(client, yaml.safe_dump(make_document("Hybrid")))
        client.post(f"/plans/{first['plan_id']}/apply")
        client.post(f"/plans/{second['plan_id']}/apply")

        retry = client.post(f"/plans/{second['plan_id']}/apply")

        assert retry.status_code == 404
        assert second["plan_id"] not in main.applied_plans
        assert first["plan_id"] in main.applied_plans

    def test_pending_plans_are_bounded(self, client, config_yaml, monkeypatch):
        monkeypatch.setattr(main, "MAX_PENDING_PLANS", 2)

        ids = [create_plan(client, config_yaml)["plan_id"] for _ in range(3)]

        assert list(main.pending_plans) == ids[1:]
        assert client.get(f"/plans/{ids[0]}").status_code == 404

    def test_failed_apply_is_reported(self, client, config_yaml, vehicle):
        vehicle.fail_addresses.add("MyCar.engine")
        plan_id = create_plan(client, config_yaml)["plan_id"]

        body = client.post(f"/plans/{plan_id}/apply").json()

        assert body["status"] == "failed"
        assert body["failed_operation"] == "MyCar.engine"
        assert body["snapshot"] is None
        assert client.get("/state").status_code == 404


class TestDrift:
    def test_drift(self, client, config_yaml, vehicle):
        plan_id = create_plan(client, config_yaml)["plan_id"]
        client.post(f"/plans/{plan_id}/apply")
        assert client.get("/drift").json()["drifted"] is False

        vehicle.set_attribute("MyCar.radar-1", "range", 50)
        body = client.get("/drift").json()

        assert body["drifted"] is True
        assert body["operations"][0]["address"] == "MyCar.radar-1"
