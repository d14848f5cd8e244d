"""
Vehicle as Code - Powertrain Kinds

Engine and transmission resources. Their `type` is kind-defining:
changing it means swapping the physical unit, which is a replace.
"""

from __future__ import annotations
from typing import Any, Dict, List

from vac.kinds.base import KindDefinition, KindRegistry, is_whole_number
from vac.models import AttributeType


class EngineKind(KindDefinition):
    """Combustion, electric or hybrid power unit."""

    KIND_NAME = "engine"
    DESCRIPTION = "Power unit"

    REQUIRED_ATTRIBUTES = {
        "type": AttributeType.STRING,
    }
    OPTIONAL_ATTRIBUTES = {
        "horsepower": AttributeType.NUMBER,
        "torque": AttributeType.NUMBER,
        "displacement": AttributeType.NUMBER,
        "fuel": AttributeType.STRING,
        "options": AttributeType.MAPPING,
    }
    IMMUTABLE_ATTRIBUTES = ["type", "fuel"]

    ALLOWED_PARENTS = ["vehicle"]

    def validate(self, attributes: Dict[str, Any]) -> List[str]:
        errors = []
        for name in ("horsepower", "torque", "displacement"):
            value = attributes.get(name)
            if value is not None and value < 0:
                errors.append(f"attribute '{name}' must not be negative")
        if (
            str(attributes.get("type", "")).lower() == "electric"
            and attributes.get("displacement")
        ):
            errors.append("electric engines have no displacement")
        return errors


class TransmissionKind(KindDefinition):
    """Gearbox coupling the engine to the drivetrain."""

    KIND_NAME = "transmission"
    DESCRIPTION = "Gearbox"

    REQUIRED_ATTRIBUTES = {
        "type": AttributeType.STRING,
    }
    OPTIONAL_ATTRIBUTES = {
        "gears": AttributeType.NUMBER,
        "drive": AttributeType.STRING,
        "options": AttributeType.MAPPING,
    }
    ALLOWED_VALUES = {
        "type": ["Automatic", "Manual", "CVT", "DCT", "Single-Speed"],
        "drive": ["FWD", "RWD", "AWD", "4WD"],
    }
    IMMUTABLE_ATTRIBUTES = ["type"]

    ALLOWED_PARENTS = ["vehicle"]

    def validate(self, attributes: Dict[str, Any]) -> List[str]:
        gears = attributes.get("gears")
        if gears is not None and (not is_whole_number(gears) or gears < 1):
            return [f"attribute 'gears' must be a positive whole number, got {gears!r}"]
        return []


# Register kinds
KindRegistry.register(EngineKind)
KindRegistry.register(TransmissionKind)
