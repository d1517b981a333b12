"""Tree splicer: locates the target OPERATION and inserts a phase before its review phase."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from engine.errors import InvariantViolation, TargetNotFound
from engine.schema import TERMINAL_ORDER_NUMBER, Level, StructureNode, StructureType

logger = logging.getLogger(__name__)

JsonDict = Dict[str, Any]


def iter_nodes(node: JsonDict, parent: Optional[JsonDict] = None) -> Iterator[Tuple[JsonDict, Optional[JsonDict]]]:
    """Yield (node, parent) pairs depth-first, starting with the root."""
    yield node, parent
    for child in node.get("children") or []:
        if isinstance(child, dict):
            yield from iter_nodes(child, node)


def find_operation(document: JsonDict, operation_id: Optional[int] = None) -> Tuple[Optional[JsonDict], JsonDict]:
    """
    Return (unit_procedure, operation) for the targeted OPERATION.

    With no operation_id the first OPERATION in document order is used.

    Raises:
        TargetNotFound: no matching OPERATION exists
    """
    for node, parent in iter_nodes(document):
        if node.get("level") != Level.OPERATION:
            continue
        if operation_id is None or node.get("id") == operation_id:
            return parent, node
    raise TargetNotFound(operation_id)


def is_terminal_phase(node: JsonDict) -> bool:
    return node.get("level") == Level.PHASE and (
        node.get("phaseOrderNumber") == TERMINAL_ORDER_NUMBER
        or node.get("type") == StructureType.ITERATION_REVIEW
    )


def find_terminal_phase_index(operation: JsonDict) -> int:
    """
    Index of the reserved ITERATION_REVIEW phase among the operation's children.

    Raises:
        InvariantViolation: the operation has no terminal review phase
    """
    for index, child in enumerate(operation.get("children") or []):
        if isinstance(child, dict) and is_terminal_phase(child):
            return index
    raise InvariantViolation(
        f"OPERATION {operation.get('id')} has no ITERATION_REVIEW phase "
        f"(phaseOrderNumber {TERMINAL_ORDER_NUMBER})"
    )


def splice_phase(document: JsonDict, operation_id: int, new_phase: Union[StructureNode, JsonDict]) -> JsonDict:
    """
    Insert new_phase immediately before the terminal review phase of the operation.

    The document is modified in place and returned. Sibling order numbers are
    left alone: the new phase's order number already sorts after every real phase.
    """
    _, operation = find_operation(document, operation_id)
    index = find_terminal_phase_index(operation)
    phase = new_phase.to_dict() if isinstance(new_phase, StructureNode) else new_phase
    operation["children"].insert(index, phase)
    logger.info(f"Phase \"{phase.get('title')}\" spliced into OPERATION {operation_id} at position {index}")
    return document
