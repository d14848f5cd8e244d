"""
Vehicle as Code - Schema Validator

Decodes and validates vehicle configuration documents against the
registered resource kinds. Validation is a pure function of the
document and the kind registry, and reports every issue found.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Type
import logging
import re

import yaml

from vac.errors import ValidationError
from vac.kinds import KindRegistry
from vac.models import attribute_type_of

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

ROOT_KIND = "vehicle"

# Fields allowed on a resource node ("dependsOn" is accepted as an alias)
NODE_FIELDS = {"name", "kind", "attributes", "children", "depends_on", "dependsOn"}


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation problem at a node path."""
    path: str
    reason: str

    def __str__(self) -> str:
        return f"{self.path}: {self.reason}"


def raw_dependencies(raw: Dict[str, Any]) -> List[str]:
    """Return the dependency references of a raw node as a list."""
    value = raw.get("depends_on", raw.get("dependsOn"))
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


class SchemaValidator:
    """
    Validator for vehicle configuration documents.

    Responsibilities:
    - Decode YAML/JSON content into a document
    - Check node structure and names
    - Check kinds are registered and correctly placed
    - Check attributes against each kind's schema
    - Report all issues with their node paths
    """

    def __init__(self, registry: Type[KindRegistry] = KindRegistry):
        """Initialize validator."""
        self.registry = registry
        self.logger = logging.getLogger(__name__)

    # =========================================================================
    # DOCUMENT LOADING
    # =========================================================================

    def load_document(self, content: str) -> Dict[str, Any]:
        """
        Decode YAML (or JSON) content into a document mapping.

        Args:
            content: Raw configuration text

        Returns:
            Decoded document

        Raises:
            ValidationError: If the content is not a YAML mapping
        """
        try:
            document = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ValidationError(
                "YAML syntax error",
                issues=[ValidationIssue("<document>", str(e))],
            )
        if document is None:
            raise ValidationError(
                "Empty configuration",
                issues=[ValidationIssue("<document>", "document is empty")],
            )
        if not isinstance(document, dict):
            raise ValidationError(
                "Configuration must be a YAML mapping",
                issues=[ValidationIssue("<document>", "document must be a mapping")],
            )
        return document

    def load_file(self, file_path: str) -> Dict[str, Any]:
        """
        Decode a configuration file.

        Raises:
            ValidationError: If the file cannot be read or decoded
        """
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            raise ValidationError(
                "Cannot read file",
                issues=[ValidationIssue(file_path, str(e))],
            )
        return self.load_document(content)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self, document: Any) -> List[ValidationIssue]:
        """
        Validate a document.

        Args:
            document: Decoded configuration (root vehicle node mapping)

        Returns:
            List of validation issues (empty if valid)
        """
        issues: List[ValidationIssue] = []
        if not isinstance(document, dict):
            issues.append(ValidationIssue("<document>", "document must be a mapping"))
            return issues

        self._validate_node(document, issues, parent_path=None, parent_kind=None, index=0)
        return issues

    def validate_document(self, document: Any) -> Dict[str, Any]:
        """
        Validate a document, raising on any issue.

        Returns:
            The document itself, now known to be valid

        Raises:
            ValidationError: Carrying every issue found
        """
        issues = self.validate(document)
        if issues:
            self.logger.info(f"Validation failed with {len(issues)} issue(s)")
            raise ValidationError("Configuration validation failed", issues=issues)
        return document

    def _node_path(
        self,
        raw: Dict[str, Any],
        parent_path: Optional[str],
        index: int,
    ) -> str:
        name = raw.get("name")
        valid = isinstance(name, str) and NAME_PATTERN.match(name)
        if parent_path is None:
            return name if valid else "<root>"
        if valid:
            return f"{parent_path}.{name}"
        return f"{parent_path}.children[{index}]"

    def _validate_node(
        self,
        raw: Dict[str, Any],
        issues: List[ValidationIssue],
        parent_path: Optional[str],
        parent_kind: Optional[str],
        index: int,
    ) -> None:
        """Validate a single node and recurse into its children."""
        path = self._node_path(raw, parent_path, index)
        is_root = parent_path is None

        def issue(reason: str) -> None:
            issues.append(ValidationIssue(path, reason))

        for key in raw:
            if key not in NODE_FIELDS:
                issue(f"unknown field '{key}'")
        if "depends_on" in raw and "dependsOn" in raw:
            issue("use either 'depends_on' or 'dependsOn', not both")

        # Name
        name = raw.get("name")
        if name is None:
            issue("missing required field 'name'")
        elif not isinstance(name, str) or not NAME_PATTERN.match(name):
            issue(
                f"invalid name {name!r} (letters, digits, '-' and '_' only)"
            )

        # Kind
        kind_name = raw.get("kind", ROOT_KIND if is_root else None)
        kind = None
        if kind_name is None:
            issue("missing required field 'kind'")
        elif not self.registry.is_registered(kind_name):
            issue(
                f"unknown kind {kind_name!r}. "
                f"Registered: {self.registry.available()}"
            )
        else:
            kind = self.registry.get(kind_name)
            if is_root and kind.KIND_NAME != ROOT_KIND:
                issue(f"root resource must be of kind '{ROOT_KIND}', got '{kind.KIND_NAME}'")
            elif not is_root and kind.ROOT_ONLY:
                issue(f"kind '{kind.KIND_NAME}' may only be used as the root")
            elif (
                not is_root
                and parent_kind is not None
                and not kind.can_be_child_of(parent_kind)
            ):
                issue(
                    f"kind '{kind.KIND_NAME}' cannot be placed under "
                    f"'{parent_kind}'. Allowed parents: {kind.ALLOWED_PARENTS}"
                )

        # Attributes
        attributes = raw.get("attributes", {})
        if attributes is None:
            attributes = {}
        if not isinstance(attributes, dict):
            issue("'attributes' must be a mapping")
        elif kind is not None:
            for error in kind.validate_attributes(attributes):
                issue(error)
        else:
            for attr, value in attributes.items():
                if attribute_type_of(value) is None:
                    issue(f"attribute '{attr}' has unsupported value {value!r}")

        # Dependencies
        deps = raw.get("depends_on", raw.get("dependsOn"))
        if deps is not None:
            if isinstance(deps, str):
                deps = [deps]
            if not isinstance(deps, list):
                issue("'depends_on' must be a string or a list of strings")
            else:
                for dep in deps:
                    if not isinstance(dep, str) or not dep:
                        issue(f"invalid dependency reference {dep!r}")

        # Children
        children = raw.get("children", [])
        if children is None:
            children = []
        if not isinstance(children, list):
            issue("'children' must be a list")
            return

        seen: Set[str] = set()
        own_kind = kind.KIND_NAME if kind is not None else None
        for i, child in enumerate(children):
            if not isinstance(child, dict):
                issues.append(
                    ValidationIssue(f"{path}.children[{i}]", "child must be a mapping")
                )
                continue
            child_name = child.get("name")
            if isinstance(child_name, str):
                if child_name in seen:
                    issue(f"duplicate child name '{child_name}'")
                seen.add(child_name)
            self._validate_node(child, issues, parent_path=path, parent_kind=own_kind, index=i)


# Singleton instance
validator = SchemaValidator()


def get_validator() -> SchemaValidator:
    """Get validator instance."""
    return validator
