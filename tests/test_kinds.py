"""
Tests for resource kinds and the kind registry.
"""

import pytest

from vac.adapters import AdapterFactory, SimulatedVehicleAdapter
from vac.kinds import KindRegistry
from vac.models import AttributeType, attribute_type_of


class TestAttributeTypes:
    @pytest.mark.parametrize("value,expected", [
        ("V8", AttributeType.STRING),
        (450, AttributeType.NUMBER),
        (2.5, AttributeType.NUMBER),
        (True, AttributeType.BOOLEAN),
        ({"map": "sport", "nested": {"limit": 7200}}, AttributeType.MAPPING),
        ([1, 2], None),
        (None, None),
        ({"bad": [1]}, None),
        (float("inf"), None),
        (float("nan"), None),
        ({"nested": float("-inf")}, None),
    ])
    def test_attribute_type_of(self, value, expected):
        assert attribute_type_of(value) == expected


class TestRegistry:
    def test_builtin_kinds(self):
        assert {"vehicle", "engine", "transmission", "sensor", "actuator"} <= set(
            KindRegistry.available()
        )

    def test_lookup_is_case_insensitive(self):
        assert KindRegistry.get("Sensor").KIND_NAME == "sensor"
        assert KindRegistry.is_registered("ENGINE")

    def test_unknown_kind(self):
        assert KindRegistry.get("teleporter") is None
        assert KindRegistry.get(None) is None
        assert not KindRegistry.is_registered(42)

    def test_immutable_attributes(self):
        assert KindRegistry.get("engine").is_immutable("type")
        assert not KindRegistry.get("engine").is_immutable("horsepower")
        assert KindRegistry.get("vehicle").is_immutable("vin")

    def test_placement(self):
        assert KindRegistry.get("engine").can_be_child_of("vehicle")
        assert not KindRegistry.get("engine").can_be_child_of("sensor")
        assert KindRegistry.get("sensor").can_be_child_of("sensor")
        assert not KindRegistry.get("vehicle").can_be_child_of("vehicle")


class TestKindChecks:
    def test_vin_length(self):
        errors = KindRegistry.get("vehicle").validate_attributes({"vin": "SHORT"})
        assert errors == ["attribute 'vin' must be 17 characters, got 5"]

    def test_year(self):
        vehicle = KindRegistry.get("vehicle")
        assert vehicle.validate_attributes({"year": 2024}) == []
        assert vehicle.validate_attributes({"year": 1700})

    def test_gears(self):
        transmission = KindRegistry.get("transmission")
        assert transmission.validate_attributes({"type": "Manual", "gears": 6}) == []
        assert transmission.validate_attributes({"type": "Manual", "gears": 0})
        assert transmission.validate_attributes({"type": "Manual", "gears": 5.5})

    def test_huge_whole_numbers(self):
        assert KindRegistry.get("vehicle").validate_attributes({"year": 10 ** 400}) == []
        assert KindRegistry.get("transmission").validate_attributes(
            {"type": "Manual", "gears": 1e300}
        ) == []

    def test_normalize_attributes(self):
        transmission = KindRegistry.get("transmission")
        attributes = {"type": "cvt", "drive": "awd", "gears": 1}
        assert transmission.normalize_attributes(attributes) == {
            "type": "CVT",
            "drive": "AWD",
            "gears": 1,
        }
        assert attributes["type"] == "cvt"

    def test_electric_engine_displacement(self):
        engine = KindRegistry.get("engine")
        assert engine.validate_attributes({"type": "Electric", "displacement": 2.0})
        assert engine.validate_attributes({"type": "V6", "displacement": 3.0}) == []

    def test_negative_values(self):
        assert KindRegistry.get("engine").validate_attributes({"type": "V8", "horsepower": -1})
        assert KindRegistry.get("sensor").validate_attributes({"type": "Radar", "range": -5})


class TestAdapterFactory:
    def test_create_simulated(self):
        adapter = AdapterFactory.create("simulated", "MyCar", failure_rate=0.0)
        assert isinstance(adapter, SimulatedVehicleAdapter)
        assert adapter.vehicle_id == "MyCar"
        assert "simulated" in AdapterFactory.available_adapters()

    def test_unknown_adapter(self):
        with pytest.raises(ValueError):
            AdapterFactory.create("obd2")

    def test_simulated_rejects_inconsistent_operations(self, graph):
        from vac.engine import diff
        from vac.models import ResourceGraph

        adapter = SimulatedVehicleAdapter("MyCar")
        operations = diff(graph, ResourceGraph.empty())
        engine_create = next(op for op in operations if op.address == "MyCar.engine")

        assert adapter.apply(engine_create).error == "Vehicle not connected"
        adapter.connect()
        assert "Parent component missing" in adapter.apply(engine_create).error

        state = adapter.get_state()
        assert state["component_count"] == 0
        assert state["operation_count"] == 2
