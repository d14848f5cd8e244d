"""
Shared test fixtures and configuration.
"""

import copy
from typing import Any, Dict, List

import pytest

from vac.adapters import InMemoryStateStore, SimulatedVehicleAdapter
from vac.engine import ReconciliationEngine, compile_document
from vac.storage import JsonStateStore


BASE_DOCUMENT: Dict[str, Any] = {
    "name": "MyCar",
    "kind": "Vehicle",
    "attributes": {"model": "Roadster", "year": 2024},
    "children": [
        {"name": "engine", "kind": "Engine", "attributes": {"type": "V8", "horsepower": 450}},
        {"name": "transmission", "kind": "Transmission", "attributes": {"type": "Automatic", "gears": 8}},
        {"name": "radar-1", "kind": "Sensor", "attributes": {"type": "Radar", "range": 100}},
        {"name": "throttle-1", "kind": "Actuator", "attributes": {"type": "Throttle"}},
    ],
}


def find_child(document: Dict[str, Any], name: str) -> Dict[str, Any]:
    for child in document.get("children", []):
        if child["name"] == name:
            return child
    raise KeyError(name)


@pytest.fixture
def make_document():
    """Return a factory producing a fresh copy of the MyCar document."""

    def factory(engine_type: str = "V8", extra_children: List[Dict[str, Any]] = ()):
        document = copy.deepcopy(BASE_DOCUMENT)
        find_child(document, "engine")["attributes"]["type"] = engine_type
        document["children"].extend(copy.deepcopy(list(extra_children)))
        return document

    return factory


@pytest.fixture
def document(make_document) -> Dict[str, Any]:
    return make_document()


@pytest.fixture
def graph(document):
    return compile_document(document)


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def vehicle() -> SimulatedVehicleAdapter:
    return SimulatedVehicleAdapter("MyCar")


@pytest.fixture
def engine(store, vehicle) -> ReconciliationEngine:
    return ReconciliationEngine(state_store=store, adapter=vehicle)


@pytest.fixture
def json_store(tmp_path) -> JsonStateStore:
    return JsonStateStore(str(tmp_path / "state"))
