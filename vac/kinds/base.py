"""
Vehicle as Code - Resource Kind Interface

Defines the kind definition interface and registry for extensibility.
New hardware types are added by subclassing KindDefinition and
registering it; the validator, differ and planner never need changes.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Type
import logging

from vac.models import AttributeType, attribute_type_of

logger = logging.getLogger(__name__)


def is_whole_number(value: Any) -> bool:
    """True for ints and for finite floats without a fractional part."""
    if isinstance(value, float):
        return value.is_integer()
    return isinstance(value, int) and not isinstance(value, bool)


class KindDefinition:
    """
    Base class for all resource kinds.

    Each kind declares:
    - Required and optional attributes with their types
    - Allowed values for enumerated attributes
    - Immutable attributes (a change forces a replace)
    - Where the kind may appear in the resource tree

    Subclasses override the class attributes and, when needed,
    the validate() hook for kind-specific checks.
    """

    # Kind metadata (override in subclasses)
    KIND_NAME: str = "base"
    DESCRIPTION: str = ""

    REQUIRED_ATTRIBUTES: Dict[str, AttributeType] = {}
    OPTIONAL_ATTRIBUTES: Dict[str, AttributeType] = {}
    ALLOWED_VALUES: Dict[str, List[Any]] = {}
    IMMUTABLE_ATTRIBUTES: List[str] = []
    ALLOW_EXTRA_ATTRIBUTES: bool = True

    # Placement rules
    ROOT_ONLY: bool = False
    ALLOWED_PARENTS: Optional[List[str]] = None  # None = any parent

    def __init__(self):
        self.logger = logging.getLogger(f"kind.{self.KIND_NAME}")

    def declared_attributes(self) -> Dict[str, AttributeType]:
        return {**self.OPTIONAL_ATTRIBUTES, **self.REQUIRED_ATTRIBUTES}

    def validate_attributes(self, attributes: Dict[str, Any]) -> List[str]:
        """
        Validate attributes against this kind's schema.

        Args:
            attributes: Attribute mapping of a single resource

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        declared = self.declared_attributes()
        well_typed: Dict[str, Any] = {}

        for name in self.REQUIRED_ATTRIBUTES:
            if name not in attributes:
                errors.append(f"missing required attribute '{name}'")

        for name, value in attributes.items():
            actual = attribute_type_of(value)
            if actual is None:
                errors.append(
                    f"attribute '{name}' has unsupported value {value!r} "
                    f"(expected finite number, string, boolean or mapping)"
                )
                continue

            expected = declared.get(name)
            if expected is None:
                if not self.ALLOW_EXTRA_ATTRIBUTES:
                    errors.append(
                        f"unknown attribute '{name}' for kind '{self.KIND_NAME}'"
                    )
                continue

            if actual != expected:
                errors.append(
                    f"attribute '{name}' must be a {expected.value}, "
                    f"got {actual.value}"
                )
                continue

            allowed = self.ALLOWED_VALUES.get(name)
            if allowed and not self._is_allowed(value, allowed):
                errors.append(
                    f"attribute '{name}' has invalid value {value!r}. "
                    f"Allowed: {allowed}"
                )
                continue

            well_typed[name] = value

        # Kind-specific checks only see declared attributes that passed above
        errors.extend(self.validate(well_typed))

        return errors

    def normalize_attributes(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return a copy with enumerated string values in their declared spelling.

        "automatic" and "Automatic" are the same transmission type, so
        graphs built from either document compare equal.
        """
        result = dict(attributes)
        for name, allowed in self.ALLOWED_VALUES.items():
            value = result.get(name)
            if not isinstance(value, str):
                continue
            for candidate in allowed:
                if isinstance(candidate, str) and candidate.lower() == value.lower():
                    result[name] = candidate
                    break
        return result

    def validate(self, attributes: Dict[str, Any]) -> List[str]:
        """Kind-specific validation hook."""
        return []

    def can_be_child_of(self, parent_kind: str) -> bool:
        if self.ROOT_ONLY:
            return False
        if self.ALLOWED_PARENTS is None:
            return True
        return parent_kind in self.ALLOWED_PARENTS

    def is_immutable(self, attribute: str) -> bool:
        return attribute in self.IMMUTABLE_ATTRIBUTES

    @staticmethod
    def _is_allowed(value: Any, allowed: List[Any]) -> bool:
        if isinstance(value, str):
            return value.lower() in {
                a.lower() for a in allowed if isinstance(a, str)
            }
        return value in allowed


class KindRegistry:
    """
    Registry of available resource kinds.

    Usage:
        KindRegistry.register(EngineKind)
        kind = KindRegistry.get("engine")
    """

    _kinds: Dict[str, Type[KindDefinition]] = {}

    @classmethod
    def register(cls, kind_class: Type[KindDefinition]) -> None:
        """Register a kind definition class."""
        name = kind_class.KIND_NAME.lower()
        cls._kinds[name] = kind_class
        logger.debug(f"Registered resource kind: {name}")

    @classmethod
    def unregister(cls, name: str) -> None:
        cls._kinds.pop(name.lower(), None)

    @classmethod
    def get(cls, name: str) -> Optional[KindDefinition]:
        """Get kind definition instance by name (case-insensitive)."""
        if not isinstance(name, str):
            return None
        kind_class = cls._kinds.get(name.lower())
        if kind_class:
            return kind_class()
        return None

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return isinstance(name, str) and name.lower() in cls._kinds

    @classmethod
    def available(cls) -> List[str]:
        """Get sorted list of registered kind names."""
        return sorted(cls._kinds)
