"""
Node factory: one constructor per node and leaf kind.

Constructors never draw ids themselves. Callers pass already-allocated ids
and identity tokens, so the order in which ids are consumed is decided by
the phase assembler alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from engine.errors import InvariantViolation, SchemaError
from engine.identifiers import Identity
from engine.splicer import is_terminal_phase
from engine.schema import (
    TERMINAL_ORDER_NUMBER,
    ActionTrigger,
    CorrectionStepNode,
    DataCaptureStep,
    DataCaptureType,
    DataEntryStepNode,
    GeneralNumericStep,
    GeneralTextStep,
    NotesStep,
    PhaseNode,
    PhaseStepNode,
    SignOffStep,
    SignOffType,
    StepAction,
    StructureDisplay,
    StructureNode,
    StructureType,
)

CHARACTER_LIMIT_LABEL = "Character Limit: "
DEFAULT_MIN_CHARACTERS = 1
DEFAULT_MAX_CHARACTERS = 120

# Flag overrides for bookkeeping leaves; anything not listed keeps the
# DataCaptureStep default (False / empty).
BOOKKEEPING_DEFAULTS: Dict[DataCaptureType, Dict[str, bool]] = {
    DataCaptureType.TRAINING_OVERRIDE: {"optional_step": True},
    DataCaptureType.PREDECESSOR_OVERRIDE: {"optional_step": True},
    DataCaptureType.PHASE_COMPLETE_BUTTON: {"primary_step": True},
    DataCaptureType.STRUCTURE_COMPLETE: {"auto_captured": True, "primary_step": True},
    DataCaptureType.ITERATION_READY_FOR_REVIEW: {},
    DataCaptureType.ITERATION_COMPLETE: {"auto_captured": True, "primary_step": True},
    DataCaptureType.CORRECTION_START: {"optional_step": True},
    DataCaptureType.CORRECTION_END: {"optional_step": True},
    DataCaptureType.CORRECTION_CANCEL: {"optional_step": True},
}

PHASE_BOOKKEEPING: Tuple[DataCaptureType, ...] = (
    DataCaptureType.TRAINING_OVERRIDE,
    DataCaptureType.PHASE_COMPLETE_BUTTON,
    DataCaptureType.PREDECESSOR_OVERRIDE,
    DataCaptureType.STRUCTURE_COMPLETE,
)
ITERATION_REVIEW_BOOKKEEPING: Tuple[DataCaptureType, ...] = (
    DataCaptureType.ITERATION_READY_FOR_REVIEW,
    DataCaptureType.ITERATION_COMPLETE,
)
CORRECTION_BOOKKEEPING: Tuple[DataCaptureType, ...] = (
    DataCaptureType.CORRECTION_START,
    DataCaptureType.CORRECTION_END,
    DataCaptureType.CORRECTION_CANCEL,
)


@dataclass(frozen=True)
class OperationContext:
    """Ancestor linkage shared by every node built under one OPERATION."""

    master_template_id: int
    unit_procedure_id: int
    operation_id: int
    unit_procedure_order_number: int = 1
    operation_order_number: int = 1
    # Order numbers of the operation's non-terminal phases.
    phase_order_numbers: Tuple[int, ...] = ()

    @classmethod
    def from_nodes(
        cls,
        document: Dict[str, Any],
        unit_procedure: Optional[Dict[str, Any]],
        operation: Dict[str, Any],
    ) -> "OperationContext":
        """Derive the context from the baseline's PROCEDURE, UNIT_PROCEDURE and OPERATION dicts."""
        unit_procedure_id = operation.get("unitProcedureId") or (unit_procedure or {}).get("id")
        phase_orders = tuple(
            child["phaseOrderNumber"]
            for child in operation.get("children") or []
            if isinstance(child, dict)
            and child.get("level") == "PHASE"
            and not is_terminal_phase(child)
            and isinstance(child.get("phaseOrderNumber"), int)
        )
        linkage = {
            "master_template_id": operation.get("masterTemplateId") or document.get("id"),
            "unit_procedure_id": unit_procedure_id,
            "operation_id": operation.get("id"),
        }
        for name, value in linkage.items():
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvariantViolation(f"Cannot resolve {name} for OPERATION {operation.get('title')!r}")
        return cls(
            **linkage,
            unit_procedure_order_number=operation.get("unitProcedureOrderNumber") or 1,
            operation_order_number=operation.get("operationOrderNumber") or 1,
            phase_order_numbers=phase_orders,
        )

    def linkage(self, phase_id: int, phase_order_number: int) -> Dict[str, int]:
        return {
            "master_template_id": self.master_template_id,
            "unit_procedure_id": self.unit_procedure_id,
            "operation_id": self.operation_id,
            "phase_id": phase_id,
            "unit_procedure_order_number": self.unit_procedure_order_number,
            "operation_order_number": self.operation_order_number,
            "phase_order_number": phase_order_number,
        }


# ---------------------------------------------------------------------------
# Leaves
# ---------------------------------------------------------------------------

def build_bookkeeping_step(
    step_id: int, local_reference_id: str, structure_id: int, step_type: DataCaptureType
) -> DataCaptureStep:
    """Build one of the structural leaves (overrides, completion, correction markers)."""
    step_type = DataCaptureType(step_type)
    if step_type not in BOOKKEEPING_DEFAULTS:
        raise SchemaError(f"{step_type} is not a bookkeeping data capture step")
    return DataCaptureStep(
        id=step_id,
        local_reference_id=local_reference_id,
        structure_id=structure_id,
        type=step_type,
        **BOOKKEEPING_DEFAULTS[step_type],
    )


def build_sign_off(
    step_id: int, local_reference_id: str, structure_id: int, sign_off_type: SignOffType
) -> SignOffStep:
    """WITNESS sign-offs accept any signer; VERIFY requires a unique one."""
    sign_off_type = SignOffType(sign_off_type)
    return SignOffStep(
        id=step_id,
        local_reference_id=local_reference_id,
        structure_id=structure_id,
        sign_off_type=sign_off_type,
        unique_sign_off_required=sign_off_type is SignOffType.VERIFY,
    )


def build_notes(step_id: int, local_reference_id: str, structure_id: int) -> NotesStep:
    return NotesStep(id=step_id, local_reference_id=local_reference_id, structure_id=structure_id)


def build_general_text(
    step_id: int,
    local_reference_id: str,
    structure_id: int,
    trigger_id: int,
    action_id: int,
    min_characters: int = DEFAULT_MIN_CHARACTERS,
    max_characters: int = DEFAULT_MAX_CHARACTERS,
) -> GeneralTextStep:
    """Primary free-text leaf with its character-limit REJECT trigger."""
    trigger = ActionTrigger(
        id=trigger_id,
        data_capture_step_id=step_id,
        label=CHARACTER_LIMIT_LABEL,
        minimum_value=min_characters,
        maximum_value=max_characters,
        actions=[StepAction(id=action_id, step_action_trigger_id=trigger_id)],
    )
    return GeneralTextStep(
        id=step_id,
        local_reference_id=local_reference_id,
        structure_id=structure_id,
        action_triggers=[trigger],
    )


def build_general_numeric(step_id: int, local_reference_id: str, structure_id: int) -> GeneralNumericStep:
    return GeneralNumericStep(id=step_id, local_reference_id=local_reference_id, structure_id=structure_id)


# ---------------------------------------------------------------------------
# Structural nodes
# ---------------------------------------------------------------------------

def build_correction_step(
    step_id: int,
    identity: Identity,
    context: OperationContext,
    phase_id: int,
    phase_order_number: int,
    phase_step_id: int,
    phase_step_order_number: int,
    data_capture_steps: Sequence[DataCaptureStep],
) -> CorrectionStepNode:
    return CorrectionStepNode(
        id=step_id,
        global_serial_id=identity.global_serial_id,
        local_reference_id=identity.local_reference_id,
        title="",
        parent_id=phase_step_id,
        phase_step_id=phase_step_id,
        phase_step_order_number=phase_step_order_number,
        data_capture_steps=list(data_capture_steps),
        **context.linkage(phase_id, phase_order_number),
    )


def build_data_entry_step(
    step_id: int,
    identity: Identity,
    title: str,
    context: OperationContext,
    phase_id: int,
    phase_order_number: int,
    phase_step_order_number: int,
    correction: CorrectionStepNode,
    data_capture_steps: Sequence[DataCaptureStep],
    review_by_exception: bool = False,
) -> DataEntryStepNode:
    """
    Build a DATA_ENTRY PHASE_STEP.

    Args:
        step_id: Allocated id; also used as phase_step_id and structureDisplay target
        identity: Fresh identity tokens
        title: Step title shown to the operator
        context: Ancestor linkage of the target operation
        phase_id: Id of the owning phase
        phase_order_number: Order number of the owning phase
        phase_step_order_number: Position among the phase's steps (below 1000)
        correction: The step's single CORRECTION sub-phase-step
        data_capture_steps: Primary entry leaf followed by sign-off / notes leaves
        review_by_exception: Always display the step on review by exception

    Returns:
        Fully populated DataEntryStepNode
    """
    return DataEntryStepNode(
        id=step_id,
        global_serial_id=identity.global_serial_id,
        local_reference_id=identity.local_reference_id,
        title=title,
        parent_id=phase_id,
        phase_step_id=step_id,
        phase_step_order_number=phase_step_order_number,
        always_displayed_on_review_by_exception=review_by_exception,
        structure_display=StructureDisplay(structure_id=step_id, display_order_number=phase_step_order_number),
        children=[correction],
        data_capture_steps=list(data_capture_steps),
        **context.linkage(phase_id, phase_order_number),
    )


def build_iteration_review_step(
    step_id: int,
    identity: Identity,
    context: OperationContext,
    phase_id: int,
    phase_order_number: int,
    data_capture_steps: Sequence[DataCaptureStep],
) -> PhaseStepNode:
    """Terminal ITERATION_REVIEW step; always ordered at 1000."""
    return PhaseStepNode(
        id=step_id,
        global_serial_id=identity.global_serial_id,
        local_reference_id=identity.local_reference_id,
        title="",
        type=StructureType.ITERATION_REVIEW,
        parent_id=phase_id,
        phase_step_id=step_id,
        phase_step_order_number=TERMINAL_ORDER_NUMBER,
        data_capture_steps=list(data_capture_steps),
        **context.linkage(phase_id, phase_order_number),
    )


def build_phase(
    phase_id: int,
    identity: Identity,
    title: str,
    context: OperationContext,
    phase_order_number: int,
    children: List[StructureNode],
    data_capture_steps: Sequence[DataCaptureStep],
    review_by_exception: bool = False,
) -> PhaseNode:
    return PhaseNode(
        id=phase_id,
        global_serial_id=identity.global_serial_id,
        local_reference_id=identity.local_reference_id,
        title=title,
        parent_id=context.operation_id,
        always_displayed_on_review_by_exception=review_by_exception,
        children=list(children),
        data_capture_steps=list(data_capture_steps),
        **context.linkage(phase_id, phase_order_number),
    )
