"""
Vehicle as Code - Sensor and Actuator Kinds
"""

from __future__ import annotations
from typing import Any, Dict, List

from vac.kinds.base import KindDefinition, KindRegistry
from vac.models import AttributeType


class SensorKind(KindDefinition):
    """Perception or state sensor (radar, lidar, camera, ...)."""

    KIND_NAME = "sensor"
    DESCRIPTION = "Sensor"

    REQUIRED_ATTRIBUTES = {
        "type": AttributeType.STRING,
    }
    OPTIONAL_ATTRIBUTES = {
        "range": AttributeType.NUMBER,
        "position": AttributeType.STRING,
        "enabled": AttributeType.BOOLEAN,
        "sample_rate": AttributeType.NUMBER,
        "options": AttributeType.MAPPING,
    }
    ALLOWED_VALUES = {
        "type": ["Radar", "Lidar", "Camera", "Ultrasonic", "GPS", "IMU"],
    }
    IMMUTABLE_ATTRIBUTES = ["type"]

    def validate(self, attributes: Dict[str, Any]) -> List[str]:
        errors = []
        if attributes.get("range", 0) < 0:
            errors.append("attribute 'range' must not be negative")
        if attributes.get("sample_rate", 1) <= 0:
            errors.append("attribute 'sample_rate' must be positive")
        return errors


class ActuatorKind(KindDefinition):
    """Control actuator (throttle, brake, steering, ...)."""

    KIND_NAME = "actuator"
    DESCRIPTION = "Actuator"

    REQUIRED_ATTRIBUTES = {
        "type": AttributeType.STRING,
    }
    OPTIONAL_ATTRIBUTES = {
        "enabled": AttributeType.BOOLEAN,
        "max_rate": AttributeType.NUMBER,
        "options": AttributeType.MAPPING,
    }
    ALLOWED_VALUES = {
        "type": ["Throttle", "Brake", "Steering", "Suspension", "Shifter"],
    }
    IMMUTABLE_ATTRIBUTES = ["type"]


# Register kinds
KindRegistry.register(SensorKind)
KindRegistry.register(ActuatorKind)
