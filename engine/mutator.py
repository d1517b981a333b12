"""
Edit pipeline: interpret, assemble, splice, finalize, validate.

The baseline is never modified. Each call clones it, seeds a fresh id
allocator from the clone and either returns a complete result or raises
before anything is handed back.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from engine.assembler import assemble_phase
from engine.errors import StructuralValidationError
from engine.factory import OperationContext
from engine.finalizer import finalize
from engine.identifiers import IdAllocator
from engine.interpreter import EditIntent, Unrecognized, parse_instruction
from engine.splicer import find_operation, find_terminal_phase_index, splice_phase
from engine.validator import validate_document

logger = logging.getLogger(__name__)


@dataclass
class MutationResult:
    document: Dict[str, Any]
    applied: bool
    message: str
    intent: Optional[EditIntent] = None


def regenerate(baseline: Dict[str, Any], *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Finalized clone of the baseline with no structural edit."""
    return finalize(copy.deepcopy(baseline), now=now)


def mutate(
    baseline: Dict[str, Any],
    instruction: Optional[str],
    *,
    now: Optional[datetime] = None,
    validate: bool = True,
) -> MutationResult:
    """
    Apply a natural-language edit to a clone of the baseline.

    Args:
        baseline: Root PROCEDURE document (left untouched)
        instruction: e.g. "add a phase called QC with witness and verify"
        now: Generation timestamp for the title/product stamp (defaults to UTC now)
        validate: Run the structural validator on the result

    Returns:
        MutationResult; applied is False when the instruction was not recognized

    Raises:
        MalformedInstruction: phase creation requested without a usable title
        TargetNotFound: the targeted OPERATION does not exist
        InvariantViolation: the OPERATION has no terminal ITERATION_REVIEW phase
        StructuralValidationError: the produced document failed validation
    """
    document = copy.deepcopy(baseline)
    parsed = parse_instruction(instruction or "")
    if isinstance(parsed, Unrecognized):
        return MutationResult(document=finalize(document, now=now), applied=False, message=parsed.reason)

    intent = parsed.intent
    unit_procedure, operation = find_operation(document, intent.operation_id)
    find_terminal_phase_index(operation)
    context = OperationContext.from_nodes(document, unit_procedure, operation)

    allocator = IdAllocator.from_document(document)
    phase = assemble_phase(intent.title, intent.options, context, allocator)
    splice_phase(document, context.operation_id, phase)

    result = finalize(document, now=now)
    if validate:
        report = validate_document(result)
        if not report.valid:
            logger.error(f"Validation errors: {report.errors}")
            raise StructuralValidationError(report.errors)

    logger.info(f'Phase "{intent.title}" added successfully with ID {phase.id}')
    return MutationResult(
        document=result,
        applied=True,
        message=f'Added phase "{intent.title}" to OPERATION {context.operation_id}',
        intent=intent,
    )
