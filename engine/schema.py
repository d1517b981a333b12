"""
Record types for the Mx master-template document format.

Every structural node and data capture step the engine creates is a dataclass
with all schema fields named and defaulted. Records validate themselves at
construction and serialize to the camelCase JSON the consuming system imports.

Wire format reference (one PHASE, abbreviated):

    {"id": 51, "globalSerialId": "...", "localReferenceId": "...",
     "level": "PHASE", "type": "PARENT", "phaseId": 51, "phaseOrderNumber": 2,
     "parentId": 3, "children": [<PHASE_STEP>...],
     "dataCaptureSteps": [{"id": 64, "structureId": 51, "type": "TRAINING_OVERRIDE", ...}]}
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum, StrEnum
from typing import Any, Dict, List, Optional, Tuple

from engine.errors import SchemaError

TERMINAL_ORDER_NUMBER = 1000


class Level(StrEnum):
    PROCEDURE = "PROCEDURE"
    UNIT_PROCEDURE = "UNIT_PROCEDURE"
    OPERATION = "OPERATION"
    PHASE = "PHASE"
    PHASE_STEP = "PHASE_STEP"
    SUB_PHASE_STEP = "SUB_PHASE_STEP"


LEVEL_CHAIN: Tuple[Level, ...] = (
    Level.PROCEDURE,
    Level.UNIT_PROCEDURE,
    Level.OPERATION,
    Level.PHASE,
    Level.PHASE_STEP,
    Level.SUB_PHASE_STEP,
)

# Level a node's children must have; None means the level is a leaf.
CHILD_LEVEL: Dict[str, Optional[Level]] = {
    level: (LEVEL_CHAIN[index + 1] if index + 1 < len(LEVEL_CHAIN) else None)
    for index, level in enumerate(LEVEL_CHAIN)
}


class StructureType(StrEnum):
    PARENT = "PARENT"
    DATA_ENTRY = "DATA_ENTRY"
    CORRECTION = "CORRECTION"
    ITERATION_REVIEW = "ITERATION_REVIEW"


class DataCaptureType(StrEnum):
    SIGN_OFF = "SIGN_OFF"
    GENERAL_TEXT = "GENERAL_TEXT"
    GENERAL_NUMERIC = "GENERAL_NUMERIC"
    NOTES = "NOTES"
    CORRECTION_START = "CORRECTION_START"
    CORRECTION_END = "CORRECTION_END"
    CORRECTION_CANCEL = "CORRECTION_CANCEL"
    ITERATION_READY_FOR_REVIEW = "ITERATION_READY_FOR_REVIEW"
    ITERATION_COMPLETE = "ITERATION_COMPLETE"
    PHASE_COMPLETE_BUTTON = "PHASE_COMPLETE_BUTTON"
    STRUCTURE_COMPLETE = "STRUCTURE_COMPLETE"
    TRAINING_OVERRIDE = "TRAINING_OVERRIDE"
    PREDECESSOR_OVERRIDE = "PREDECESSOR_OVERRIDE"


class SignOffType(StrEnum):
    WITNESS = "WITNESS"
    VERIFY = "VERIFY"


class CorrectionType(StrEnum):
    PRIMARY_DATA_ENTRY = "PRIMARY_DATA_ENTRY"


class TriggerType(StrEnum):
    OUT_OF_NUMERIC_RANGE = "OUT_OF_NUMERIC_RANGE"


class ActionType(StrEnum):
    REJECT = "REJECT"


# ---------------------------------------------------------------------------
# Serialization / validation helpers
# ---------------------------------------------------------------------------

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _to_wire(value: Any) -> Any:
    if isinstance(value, _Record):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_to_wire(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_wire(item) for key, item in value.items()}
    return value


def _require_id(owner: str, name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise SchemaError(f"{owner}.{name} must be a positive integer, got {value!r}")


def _require_token(owner: str, name: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise SchemaError(f"{owner}.{name} must be a non-empty identity token")


def _coerce(owner: str, name: str, enum_cls, value: Any):
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise SchemaError(f"{owner}.{name} has unknown value {value!r}") from exc


class _Record:
    """Mixin giving dataclass records their camelCase JSON form."""

    def to_dict(self) -> Dict[str, Any]:
        return {_camel(f.name): _to_wire(getattr(self, f.name)) for f in fields(self)}


# ---------------------------------------------------------------------------
# Data capture steps
# ---------------------------------------------------------------------------

@dataclass(kw_only=True)
class StepAction(_Record):
    id: int
    step_action_trigger_id: int
    type: ActionType = ActionType.REJECT

    def __post_init__(self):
        _require_id("StepAction", "id", self.id)
        _require_id("StepAction", "step_action_trigger_id", self.step_action_trigger_id)
        self.type = _coerce("StepAction", "type", ActionType, self.type)


@dataclass(kw_only=True)
class ActionTrigger(_Record):
    """Validation trigger attached to a data capture step."""

    id: int
    data_capture_step_id: int
    label: str
    minimum_value: int
    maximum_value: int
    displayed_on_interface: bool = True
    minimum_value_precision: int = 0
    maximum_value_precision: int = 0
    tolerance_percent_configured: bool = False
    trigger_type: TriggerType = TriggerType.OUT_OF_NUMERIC_RANGE
    actions: List[StepAction] = field(default_factory=list)
    notifications: List[Any] = field(default_factory=list)
    not_applicable_structures: List[Any] = field(default_factory=list)

    def __post_init__(self):
        _require_id("ActionTrigger", "id", self.id)
        _require_id("ActionTrigger", "data_capture_step_id", self.data_capture_step_id)
        self.trigger_type = _coerce("ActionTrigger", "trigger_type", TriggerType, self.trigger_type)
        if self.minimum_value > self.maximum_value:
            raise SchemaError(
                f"ActionTrigger {self.id} range is empty: {self.minimum_value} > {self.maximum_value}"
            )
        for action in self.actions:
            if action.step_action_trigger_id != self.id:
                raise SchemaError(f"StepAction {action.id} does not reference trigger {self.id}")


@dataclass(kw_only=True)
class DataCaptureStep(_Record):
    """
    Leaf record describing one unit of data entry, sign-off or bookkeeping.

    structure_id is the owning node's numeric id. Only local_reference_id is an
    identity token at this level; there is no globalSerialId on leaves.
    """

    id: int
    local_reference_id: str
    structure_id: int
    type: DataCaptureType
    all_values_current: bool = False
    auto_captured: bool = False
    optional_step: bool = False
    configuration_group: bool = False
    append_to_product_id: bool = False
    replace_default_quantity: bool = False
    primary_step: bool = False
    attached_to_table_cell: bool = False
    data_capture_roles: List[Any] = field(default_factory=list)
    notification_role_ids: List[Any] = field(default_factory=list)
    action_triggers: List[ActionTrigger] = field(default_factory=list)
    received_data_projections: List[Any] = field(default_factory=list)
    projected_data_projections: List[Any] = field(default_factory=list)
    auto_na_enabled: bool = False
    temporary_change: bool = False
    data_capture_step_notifications: List[Any] = field(default_factory=list)

    def __post_init__(self):
        owner = type(self).__name__
        _require_id(owner, "id", self.id)
        _require_token(owner, "local_reference_id", self.local_reference_id)
        _require_id(owner, "structure_id", self.structure_id)
        self.type = _coerce(owner, "type", DataCaptureType, self.type)
        for trigger in self.action_triggers:
            if trigger.data_capture_step_id != self.id:
                raise SchemaError(f"ActionTrigger {trigger.id} does not reference step {self.id}")


@dataclass(kw_only=True)
class SignOffStep(DataCaptureStep):
    type: DataCaptureType = DataCaptureType.SIGN_OFF
    sign_off_type: SignOffType = SignOffType.WITNESS
    unique_sign_off_required: bool = False
    multi_iteration_sign_off_allowed: bool = False

    def __post_init__(self):
        super().__post_init__()
        self.sign_off_type = _coerce("SignOffStep", "sign_off_type", SignOffType, self.sign_off_type)
        if self.type is not DataCaptureType.SIGN_OFF:
            raise SchemaError(f"SignOffStep {self.id} must have type SIGN_OFF")
        if self.sign_off_type is SignOffType.VERIFY and not self.unique_sign_off_required:
            raise SchemaError(f"VERIFY sign-off {self.id} must require a unique signer")


@dataclass(kw_only=True)
class GeneralTextStep(DataCaptureStep):
    type: DataCaptureType = DataCaptureType.GENERAL_TEXT
    primary_step: bool = True
    header_step: bool = False
    suggested_entries: List[Any] = field(default_factory=list)
    link_production_record_configured: bool = False
    qr_included_in_general_text: bool = False


@dataclass(kw_only=True)
class GeneralNumericStep(DataCaptureStep):
    type: DataCaptureType = DataCaptureType.GENERAL_NUMERIC
    primary_step: bool = True
    decimal_precision: int = 16
    min_decimal_precision: int = 0
    precision_method: str = "DOWN"
    display_precision: bool = False
    scientific_notation: bool = False
    scientific_notation_exponent: int = 0
    measure_included_in_general_numeric: bool = False

    def __post_init__(self):
        super().__post_init__()
        if not 0 <= self.min_decimal_precision <= self.decimal_precision:
            raise SchemaError(
                f"GeneralNumericStep {self.id} precision range "
                f"{self.min_decimal_precision}..{self.decimal_precision} is invalid"
            )


@dataclass(kw_only=True)
class NotesStep(DataCaptureStep):
    type: DataCaptureType = DataCaptureType.NOTES
    optional_step: bool = True
    all_values_current: bool = True


# ---------------------------------------------------------------------------
# Structural nodes
# ---------------------------------------------------------------------------

@dataclass(kw_only=True)
class StructureDisplay(_Record):
    structure_id: int
    display_order_number: int = 1


@dataclass(kw_only=True)
class StructureNode(_Record):
    """
    Common fields of every node from PHASE downwards.

    The linkage ids (master_template_id .. phase_id) point at the ancestors of
    the node; parent_id is the direct parent. Children must sit exactly one
    level below this node.
    """

    id: int
    global_serial_id: str
    local_reference_id: str
    title: str
    level: Level
    type: StructureType
    master_template_id: int
    unit_procedure_id: int
    operation_id: int
    phase_id: int
    unit_procedure_order_number: int
    operation_order_number: int
    phase_order_number: int
    parent_id: int
    repeatable: bool = False
    not_applicable_configured: bool = False
    always_displayed_on_review_by_exception: bool = False
    children: List["StructureNode"] = field(default_factory=list)
    simplified_navigation_role_ids: List[Any] = field(default_factory=list)
    structure_roles: List[Any] = field(default_factory=list)
    instruction_parts: List[Any] = field(default_factory=list)
    received_data_projections: List[Any] = field(default_factory=list)
    projected_data_projections: List[Any] = field(default_factory=list)
    data_capture_steps: List[DataCaptureStep] = field(default_factory=list)
    api_columns: List[Any] = field(default_factory=list)
    logbook_template_ids: List[Any] = field(default_factory=list)
    tags: List[Any] = field(default_factory=list)
    product_structures: List[Any] = field(default_factory=list)
    template_table_entities: List[Any] = field(default_factory=list)
    sub_template: bool = False
    configuration_group_placeholder: bool = False
    temporary_change_structure: bool = False
    option_structure: bool = False
    simplified_navigation_roles: List[Any] = field(default_factory=list)
    is_sub_template: bool = False

    def __post_init__(self):
        owner = f"{type(self).__name__} {self.id!r}"
        _require_id(owner, "id", self.id)
        _require_token(owner, "global_serial_id", self.global_serial_id)
        _require_token(owner, "local_reference_id", self.local_reference_id)
        for name in ("master_template_id", "unit_procedure_id", "operation_id", "phase_id", "parent_id"):
            _require_id(owner, name, getattr(self, name))
        self.level = _coerce(owner, "level", Level, self.level)
        self.type = _coerce(owner, "type", StructureType, self.type)

        child_level = CHILD_LEVEL[self.level]
        for child in self.children:
            if child_level is None:
                raise SchemaError(f"{owner} is a {self.level} and cannot have children")
            if child.level != child_level:
                raise SchemaError(f"{owner} child {child.id} is {child.level}, expected {child_level}")
            if child.parent_id != self.id:
                raise SchemaError(f"{owner} child {child.id} has parent_id {child.parent_id}")
        for step in self.data_capture_steps:
            if step.structure_id != self.id:
                raise SchemaError(f"{owner} data capture step {step.id} has structure_id {step.structure_id}")


@dataclass(kw_only=True)
class PhaseNode(StructureNode):
    level: Level = Level.PHASE
    type: StructureType = StructureType.PARENT

    def __post_init__(self):
        super().__post_init__()
        if self.phase_id != self.id:
            raise SchemaError(f"PHASE {self.id} must carry its own id as phase_id, got {self.phase_id}")
        if self.parent_id != self.operation_id:
            raise SchemaError(f"PHASE {self.id} parent_id must be its operation {self.operation_id}")

        reviews = [c for c in self.children if c.type is StructureType.ITERATION_REVIEW]
        if len(reviews) != 1:
            raise SchemaError(f"PHASE {self.id} needs exactly one ITERATION_REVIEW step, found {len(reviews)}")
        review = reviews[0]
        if review.phase_step_order_number != TERMINAL_ORDER_NUMBER:
            raise SchemaError(f"ITERATION_REVIEW step {review.id} must use order {TERMINAL_ORDER_NUMBER}")
        for child in self.children:
            if child is not review and child.phase_step_order_number >= TERMINAL_ORDER_NUMBER:
                raise SchemaError(f"PHASE_STEP {child.id} is ordered after the ITERATION_REVIEW step")


@dataclass(kw_only=True)
class PhaseStepNode(StructureNode):
    level: Level = Level.PHASE_STEP
    phase_step_id: int
    phase_step_order_number: int

    def __post_init__(self):
        super().__post_init__()
        if self.phase_step_id != self.id:
            raise SchemaError(f"PHASE_STEP {self.id} must carry its own id as phase_step_id")
        if self.parent_id != self.phase_id:
            raise SchemaError(f"PHASE_STEP {self.id} parent_id must be its phase {self.phase_id}")


@dataclass(kw_only=True)
class DataEntryStepNode(PhaseStepNode):
    type: StructureType = StructureType.DATA_ENTRY
    structure_display: StructureDisplay

    def __post_init__(self):
        super().__post_init__()
        corrections = [c for c in self.children if c.type is StructureType.CORRECTION]
        if len(corrections) != 1:
            raise SchemaError(f"DATA_ENTRY step {self.id} needs exactly one CORRECTION child")
        if self.structure_display.structure_id != self.id:
            raise SchemaError(f"DATA_ENTRY step {self.id} structureDisplay must point at itself")


@dataclass(kw_only=True)
class CorrectionStepNode(StructureNode):
    level: Level = Level.SUB_PHASE_STEP
    type: StructureType = StructureType.CORRECTION
    correction_type: CorrectionType = CorrectionType.PRIMARY_DATA_ENTRY
    phase_step_id: int
    phase_step_order_number: int

    def __post_init__(self):
        super().__post_init__()
        self.correction_type = _coerce("CorrectionStepNode", "correction_type", CorrectionType, self.correction_type)
        if self.parent_id != self.phase_step_id:
            raise SchemaError(f"CORRECTION step {self.id} parent_id must be its phase step {self.phase_step_id}")
