"""
Vehicle as Code - Vehicle Kind

The vehicle is the root of every resource graph.
"""

from __future__ import annotations
from typing import Any, Dict, List

from vac.kinds.base import KindDefinition, KindRegistry, is_whole_number
from vac.models import AttributeType


class VehicleKind(KindDefinition):
    """Root resource describing the vehicle itself."""

    KIND_NAME = "vehicle"
    DESCRIPTION = "Vehicle root resource"

    OPTIONAL_ATTRIBUTES = {
        "model": AttributeType.STRING,
        "year": AttributeType.NUMBER,
        "vin": AttributeType.STRING,
        "platform": AttributeType.STRING,
        "options": AttributeType.MAPPING,
    }
    # A different VIN is a different vehicle
    IMMUTABLE_ATTRIBUTES = ["vin"]

    ROOT_ONLY = True

    def validate(self, attributes: Dict[str, Any]) -> List[str]:
        errors = []
        vin = attributes.get("vin")
        if vin is not None and len(vin) != 17:
            errors.append(f"attribute 'vin' must be 17 characters, got {len(vin)}")
        year = attributes.get("year")
        if year is not None and (not is_whole_number(year) or year < 1886):
            errors.append(f"attribute 'year' must be a whole year, got {year!r}")
        return errors


# Register kind
KindRegistry.register(VehicleKind)
