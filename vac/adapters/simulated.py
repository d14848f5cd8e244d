"""
Vehicle as Code - Simulated Vehicle Adapter

Simulates a vehicle's configurable subsystems for prototyping and
testing. Components are stored in-memory and can be exported to JSON
for state inspection.
"""

from __future__ import annotations
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
import json
import logging
import random
import time

from vac.adapters.base import AdapterFactory, VehicleAdapter
from vac.models import (
    ChangeAction,
    ChangeOperation,
    OperationResult,
    ResourceGraph,
    ResourceNode,
)

logger = logging.getLogger(__name__)


class SimulatedVehicleAdapter(VehicleAdapter):
    """
    Simulated vehicle for dry runs and tests.

    Features:
    - In-memory component table keyed by address
    - Optional simulated latency
    - Random failures (failure_rate) and deterministic failure injection
    - Rejects operations that do not fit the live state
    - Out-of-band edits for drift simulation

    This adapter allows exercising the entire reconcile flow
    without a real vehicle.
    """

    def __init__(
        self,
        vehicle_id: str = "default",
        simulate_latency: bool = False,
        failure_rate: float = 0.0,
        fail_addresses: Optional[Iterable[str]] = None,
        state_path: Optional[str] = None,
    ):
        """
        Initialize simulated vehicle.

        Args:
            vehicle_id: Vehicle identifier
            simulate_latency: Add realistic delays
            failure_rate: Probability of simulated failures (0.0 - 1.0)
            fail_addresses: Addresses whose operations always fail
            state_path: Optional path to export state to
        """
        super().__init__(vehicle_id)
        self.simulate_latency = simulate_latency
        self.failure_rate = failure_rate
        self.fail_addresses = set(fail_addresses or [])
        self.state_path = Path(state_path) if state_path else None

        self._components: Dict[str, ResourceNode] = {}
        self._operation_log: List[Dict[str, Any]] = []
        self._connected = False

        logger.info(f"SimulatedVehicleAdapter initialized: vehicle={vehicle_id}")

    def _simulate_latency(self, base_ms: int = 20, variance_ms: int = 10) -> None:
        """Simulate bus/ECU processing latency."""
        if self.simulate_latency:
            delay = (base_ms + random.randint(-variance_ms, variance_ms)) / 1000
            time.sleep(max(0.001, delay))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    def connect(self) -> bool:
        """Simulate connection to the vehicle."""
        self._simulate_latency(50, 20)
        self._connected = True
        logger.info(f"Connected to simulated vehicle: {self.vehicle_id}")
        return True

    def disconnect(self) -> None:
        """Simulate disconnection."""
        self._connected = False
        logger.info(f"Disconnected from simulated vehicle: {self.vehicle_id}")

    @property
    def connected(self) -> bool:
        return self._connected

    def apply(self, operation: ChangeOperation) -> OperationResult:
        """Apply a change operation to the simulated components."""
        self._simulate_latency()

        error = self._check(operation)
        if error is None:
            self._perform(operation)

        self._operation_log.append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": operation.action.value,
            "address": operation.address,
            "success": error is None,
            "error": error,
        })

        if error is not None:
            logger.debug(f"Rejected {operation.action.value} {operation.address}: {error}")
            return OperationResult(
                address=operation.address,
                action=operation.action,
                success=False,
                error=error,
            )

        return OperationResult(
            address=operation.address,
            action=operation.action,
            success=True,
            message=f"{operation.action.value} {operation.kind} {operation.address}",
        )

    def _check(self, operation: ChangeOperation) -> Optional[str]:
        """Return an error message if the operation cannot be applied."""
        if not self._connected:
            return "Vehicle not connected"
        if operation.address in self.fail_addresses:
            return f"Injected failure for {operation.address}"
        if self._should_fail():
            return "Simulated failure"

        exists = operation.address in self._components
        if operation.action == ChangeAction.CREATE:
            if exists:
                return f"Component already exists: {operation.address}"
            parent = operation.after.parent
            if parent is not None and parent not in self._components:
                return f"Parent component missing: {parent}"
        elif not exists:
            return f"Component not found: {operation.address}"
        elif operation.action == ChangeAction.DELETE:
            attached = [
                a for a, c in self._components.items()
                if c.parent == operation.address
            ]
            if attached:
                return f"Components still attached: {sorted(attached)}"
        return None

    def _perform(self, operation: ChangeOperation) -> None:
        if operation.action == ChangeAction.DELETE:
            del self._components[operation.address]
        else:
            self._components[operation.address] = operation.after

    def live_graph(self) -> ResourceGraph:
        """Current component configuration as a resource graph."""
        return ResourceGraph.from_nodes(dict(self._components))

    def load_graph(self, graph: ResourceGraph) -> None:
        """Replace all components with the nodes of `graph`."""
        self._components = dict(graph.nodes)

    def set_attribute(self, address: str, name: str, value: Any) -> None:
        """Change a component attribute out-of-band (drift simulation)."""
        node = self._components[address]
        attributes = {**node.attributes, name: value}
        self._components[address] = node.model_copy(update={"attributes": attributes})
        logger.warning(f"Out-of-band change on {address}: {name}={value!r}")

    @property
    def operation_log(self) -> List[Dict[str, Any]]:
        return list(self._operation_log)

    def get_state(self) -> Dict[str, Any]:
        """Get adapter state for auditing."""
        return {
            "vehicle_id": self.vehicle_id,
            "connected": self._connected,
            "component_count": len(self._components),
            "components": {
                address: node.model_dump(mode="json")
                for address, node in sorted(self._components.items())
            },
            "operation_count": len(self._operation_log),
        }

    def reset(self) -> None:
        """Reset adapter state."""
        self._components = {}
        self._operation_log = []
        logger.info(f"Simulated vehicle reset: {self.vehicle_id}")

    def export_state(self, path: Optional[str] = None) -> str:
        """Export current state to a JSON file."""
        export_path = Path(path) if path else self.state_path
        if not export_path:
            export_path = Path(f"./simulated_vehicle_{self.vehicle_id}.json")

        state = {
            "metadata": {
                "vehicle_id": self.vehicle_id,
                "exported_at": datetime.now(timezone.utc).isoformat(),
            },
            **self.get_state(),
            "operations": self._operation_log[-100:],  # Last 100 operations
        }
        with open(export_path, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2, default=str)

        logger.info(f"State exported to: {export_path}")
        return str(export_path)


# Register adapter with factory
AdapterFactory.register("simulated", SimulatedVehicleAdapter)
