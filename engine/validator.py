"""Structural validator for ISA-88 template documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from engine.schema import CHILD_LEVEL, Level

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    """
    Outcome of validate_document.

    - valid:  True when errors is empty
    - errors: one readable message per violation, in traversal order
    """

    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


def _label(node: Dict[str, Any]) -> str:
    return f'Node "{node.get("title", "")}" (id {node.get("id")})'


def _validate_node(node: Any, expected_level: Level, errors: List[str]) -> None:
    if not isinstance(node, dict):
        errors.append(f"Expected a {expected_level} node, got {type(node).__name__}")
        return

    label = _label(node)
    if not node.get("globalSerialId"):
        errors.append(f"{label} missing globalSerialId")
    if not node.get("localReferenceId"):
        errors.append(f"{label} missing localReferenceId")
    if node.get("level") != expected_level:
        errors.append(f"{label} has wrong level: {node.get('level')}, expected {expected_level}")

    children = node.get("children")
    if children is None:
        return
    if not isinstance(children, list):
        errors.append(f"{label} children must be an array")
        return

    child_level: Optional[Level] = CHILD_LEVEL[expected_level]
    if child_level is None:
        if children:
            errors.append(f"{label} is a {expected_level} and cannot have children")
        return
    for child in children:
        _validate_node(child, child_level, errors)


def validate_document(document: Any) -> ValidationReport:
    """
    Check level hierarchy and identity tokens across the whole document.

    All violations are collected; the walk never stops at the first one.
    Data-capture-step invariants are not checked here.
    """
    errors: List[str] = []
    if not isinstance(document, dict):
        return ValidationReport(valid=False, errors=["Template must be a JSON object"])

    if document.get("level") != Level.PROCEDURE:
        errors.append("Root must be level PROCEDURE")
    if not isinstance(document.get("children"), list):
        errors.append("Root must have children array")

    _validate_node(document, Level.PROCEDURE, errors)

    if errors:
        logger.warning(f"Template failed validation with {len(errors)} error(s)")
    return ValidationReport(valid=not errors, errors=errors)
