"""Typed failures raised by the template mutation engine."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class SchemaError(ValueError):
    """A record was constructed with a missing or inconsistent field."""
    pass


class MutationError(Exception):
    """Base class for structured edit failures reported to the caller."""

    code = "MUTATION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class TargetNotFound(MutationError):
    """The OPERATION an edit targets does not exist in the baseline."""

    code = "TARGET_NOT_FOUND"

    def __init__(self, operation_id: Optional[int] = None):
        if operation_id is None:
            message = "Template has no OPERATION node to insert a phase into"
        else:
            message = f"OPERATION {operation_id} not found in template"
        super().__init__(message)
        self.operation_id = operation_id

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["operationId"] = self.operation_id
        return payload


class InvariantViolation(MutationError):
    """The baseline breaks a structural invariant the edit depends on."""

    code = "INVARIANT_VIOLATION"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class MalformedInstruction(MutationError):
    """A phase-creation phrase matched but no title could be extracted."""

    code = "MALFORMED_INSTRUCTION"

    def __init__(self, instruction: str, reason: str = "could not extract a phase title"):
        super().__init__(f"{reason}: {instruction!r}")
        self.instruction = instruction

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["instruction"] = self.instruction
        return payload


class StructuralValidationError(MutationError):
    """The mutated document failed the structural validator."""

    code = "STRUCTURAL_VALIDATION_FAILED"

    def __init__(self, errors: List[str]):
        super().__init__("Invalid template structure: " + ", ".join(errors))
        self.errors = list(errors)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload
