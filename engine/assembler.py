"""Phase assembler: composes factory output into a complete new PHASE sub-tree."""

from __future__ import annotations

import logging
from typing import Iterable, List

from engine.factory import (
    CORRECTION_BOOKKEEPING,
    ITERATION_REVIEW_BOOKKEEPING,
    PHASE_BOOKKEEPING,
    OperationContext,
    build_bookkeeping_step,
    build_correction_step,
    build_data_entry_step,
    build_general_numeric,
    build_general_text,
    build_iteration_review_step,
    build_notes,
    build_phase,
    build_sign_off,
)
from engine.identifiers import IdAllocator
from engine.interpreter import PhaseOptions
from engine.schema import (
    TERMINAL_ORDER_NUMBER,
    DataCaptureStep,
    DataEntryStepNode,
    PhaseNode,
    PhaseStepNode,
    SignOffType,
    StructureNode,
)

logger = logging.getLogger(__name__)

DATA_ENTRY_STEP_ORDER_NUMBER = 1


def next_phase_order_number(phase_order_numbers: Iterable[int]) -> int:
    """One past the highest non-terminal phase order number (1 when there is none)."""
    real_orders = [order for order in phase_order_numbers if order < TERMINAL_ORDER_NUMBER]
    return max(real_orders, default=0) + 1


def _assemble_data_entry(
    title: str,
    options: PhaseOptions,
    context: OperationContext,
    allocator: IdAllocator,
    phase_id: int,
    phase_order_number: int,
) -> DataEntryStepNode:
    step_id = allocator.next_id()
    step_identity = allocator.mint_identity()

    correction_id = allocator.next_id()
    correction_identity = allocator.mint_identity()
    correction_leaves = [
        build_bookkeeping_step(allocator.next_id(), allocator.mint_token(), correction_id, step_type)
        for step_type in CORRECTION_BOOKKEEPING
    ]
    correction = build_correction_step(
        correction_id,
        correction_identity,
        context,
        phase_id,
        phase_order_number,
        phase_step_id=step_id,
        phase_step_order_number=DATA_ENTRY_STEP_ORDER_NUMBER,
        data_capture_steps=correction_leaves,
    )

    leaves: List[DataCaptureStep] = []
    if options.numeric:
        leaves.append(build_general_numeric(allocator.next_id(), allocator.mint_token(), step_id))
    else:
        text_id = allocator.next_id()
        trigger_id = allocator.next_id()
        action_id = allocator.next_id()
        leaves.append(build_general_text(text_id, allocator.mint_token(), step_id, trigger_id, action_id))
    if options.witness:
        leaves.append(build_sign_off(allocator.next_id(), allocator.mint_token(), step_id, SignOffType.WITNESS))
    if options.verify:
        leaves.append(build_sign_off(allocator.next_id(), allocator.mint_token(), step_id, SignOffType.VERIFY))
    if options.notes:
        leaves.append(build_notes(allocator.next_id(), allocator.mint_token(), step_id))

    return build_data_entry_step(
        step_id,
        step_identity,
        title,
        context,
        phase_id,
        phase_order_number,
        phase_step_order_number=DATA_ENTRY_STEP_ORDER_NUMBER,
        correction=correction,
        data_capture_steps=leaves,
        review_by_exception=options.review_by_exception,
    )


def _assemble_iteration_review(
    context: OperationContext, allocator: IdAllocator, phase_id: int, phase_order_number: int
) -> PhaseStepNode:
    step_id = allocator.next_id()
    identity = allocator.mint_identity()
    leaves = [
        build_bookkeeping_step(allocator.next_id(), allocator.mint_token(), step_id, step_type)
        for step_type in ITERATION_REVIEW_BOOKKEEPING
    ]
    return build_iteration_review_step(step_id, identity, context, phase_id, phase_order_number, leaves)


def assemble_phase(
    title: str, options: PhaseOptions, context: OperationContext, allocator: IdAllocator
) -> PhaseNode:
    """
    Build a new PHASE with its steps and leaves.

    Ids are drawn in a fixed order: the phase, then the optional data-entry
    step (with its correction sub-step and leaves), then the ITERATION_REVIEW
    step and its leaves, then the phase's own bookkeeping leaves.

    Args:
        title: Phase title (also used for the data-entry step)
        options: Parsed feature flags
        context: Linkage of the target operation, including its phase order numbers
        allocator: Id allocator seeded from the document being edited

    Returns:
        PhaseNode whose children are [data-entry step?, iteration-review step]
    """
    phase_order_number = next_phase_order_number(context.phase_order_numbers)
    phase_id = allocator.next_id()
    phase_identity = allocator.mint_identity()
    logger.info(f"New phase ID: {phase_id}, phaseOrderNumber: {phase_order_number}")

    children: List[StructureNode] = []
    if options.wants_data_entry:
        children.append(_assemble_data_entry(title, options, context, allocator, phase_id, phase_order_number))
    children.append(_assemble_iteration_review(context, allocator, phase_id, phase_order_number))

    leaves = [
        build_bookkeeping_step(allocator.next_id(), allocator.mint_token(), phase_id, step_type)
        for step_type in PHASE_BOOKKEEPING
    ]

    # Without a data-entry step the review-by-exception flag lands on the phase.
    return build_phase(
        phase_id,
        phase_identity,
        title,
        context,
        phase_order_number,
        children=children,
        data_capture_steps=leaves,
        review_by_exception=options.review_by_exception and not options.wants_data_entry,
    )
