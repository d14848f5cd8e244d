"""
Vehicle as Code - Resource Kinds Package

Registry-based resource kind definitions. Importing this package
registers the built-in kinds: vehicle, engine, transmission,
sensor and actuator.
"""

from vac.kinds.base import KindDefinition, KindRegistry
from vac.kinds.vehicle import VehicleKind
from vac.kinds.powertrain import EngineKind, TransmissionKind
from vac.kinds.devices import SensorKind, ActuatorKind

__all__ = [
    "KindDefinition",
    "KindRegistry",
    "VehicleKind",
    "EngineKind",
    "TransmissionKind",
    "SensorKind",
    "ActuatorKind",
]
