"""
Vehicle as Code - Adapters Package

Provides the state store and vehicle adapter interfaces plus
reference implementations. The adapter pattern allows swapping
between simulated and real vehicles.
"""

from vac.adapters.base import AdapterFactory, StateStore, VehicleAdapter
from vac.adapters.memory import InMemoryStateStore
from vac.adapters.simulated import SimulatedVehicleAdapter

__all__ = [
    "AdapterFactory",
    "StateStore",
    "VehicleAdapter",
    "InMemoryStateStore",
    "SimulatedVehicleAdapter",
]
