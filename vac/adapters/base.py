"""
Vehicle as Code - Adapter Interfaces

Defines the abstract interfaces the engine talks to:
- StateStore: supplies the last applied snapshot and records new ones
- VehicleAdapter: applies individual change operations to a vehicle

The adapter pattern allows swapping between simulated and real
vehicle connections, and between in-memory and durable state.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from vac.models import (
    ChangeOperation,
    OperationResult,
    ResourceGraph,
    StateSnapshot,
)


class StateStore(ABC):
    """
    Abstract base class for state stores.

    Implementations must be atomic (a snapshot is either fully recorded
    or not at all) and single-writer: `save` only accepts the generation
    directly following the latest one.
    """

    @abstractmethod
    def load_latest(self) -> StateSnapshot:
        """
        Load the most recently saved snapshot.

        Returns:
            Latest StateSnapshot

        Raises:
            StateNotFoundError: If nothing has been saved yet
        """
        pass

    @abstractmethod
    def save(self, graph: ResourceGraph, generation: int) -> StateSnapshot:
        """
        Record a newly applied graph.

        Args:
            graph: Graph now present on the vehicle
            generation: Must be exactly latest generation + 1

        Returns:
            The recorded StateSnapshot

        Raises:
            StalePlanError: If the generation does not follow the latest one
        """
        pass

    def history(self) -> List[int]:
        """Generations available in this store, oldest first."""
        return []


class VehicleAdapter(ABC):
    """
    Abstract base class for vehicle adapters.

    All vehicle adapters (simulated or real) must implement this interface.
    `apply` is invoked once per operation, strictly in plan order, and
    reports failures through OperationResult rather than raising.
    """

    def __init__(self, vehicle_id: str = "default"):
        """
        Initialize adapter for a specific vehicle.

        Args:
            vehicle_id: Vehicle identifier
        """
        self.vehicle_id = vehicle_id

    @abstractmethod
    def connect(self) -> bool:
        """
        Establish connection to the vehicle.

        Returns:
            True if connection successful, False otherwise
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to the vehicle."""
        pass

    @abstractmethod
    def apply(self, operation: ChangeOperation) -> OperationResult:
        """
        Apply a single change operation.

        Args:
            operation: Planned operation

        Returns:
            OperationResult with success flag and optional error
        """
        pass

    @abstractmethod
    def live_graph(self) -> ResourceGraph:
        """
        Read the configuration currently present on the vehicle.

        Returns:
            Graph of the live configuration (used for drift detection)
        """
        pass

    @abstractmethod
    def get_state(self) -> Dict[str, Any]:
        """
        Get current adapter state (for debugging/auditing).

        Returns:
            Dictionary with current state information
        """
        pass

    @abstractmethod
    def reset(self) -> None:
        """Reset adapter state (for testing)."""
        pass


class AdapterFactory:
    """
    Factory for creating vehicle adapters.

    Usage:
        adapter = AdapterFactory.create("simulated", "MyCar")
    """

    _adapters: Dict[str, type] = {}

    @classmethod
    def register(cls, adapter_type: str, adapter_class: type) -> None:
        """Register an adapter type."""
        cls._adapters[adapter_type] = adapter_class

    @classmethod
    def create(
        cls,
        adapter_type: str,
        vehicle_id: str = "default",
        **kwargs,
    ) -> VehicleAdapter:
        """
        Create an adapter instance.

        Args:
            adapter_type: Type of adapter ("simulated", ...)
            vehicle_id: Vehicle identifier
            **kwargs: Additional adapter-specific arguments

        Returns:
            Configured VehicleAdapter instance

        Raises:
            ValueError: If adapter type is not registered
        """
        if adapter_type not in cls._adapters:
            raise ValueError(
                f"Unknown adapter type: {adapter_type}. "
                f"Available: {list(cls._adapters.keys())}"
            )
        return cls._adapters[adapter_type](vehicle_id, **kwargs)

    @classmethod
    def available_adapters(cls) -> List[str]:
        """Get list of available adapter types."""
        return list(cls._adapters.keys())
