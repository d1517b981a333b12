"""
Tests for engine.schema records and the engine.factory constructors.

Factory output must be schema-complete: every wire field present with its
default, and construction-time checks raising SchemaError on bad linkage.
"""

import pytest

from engine.errors import InvariantViolation, SchemaError
from engine.factory import (
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
from engine.identifiers import Identity
from engine.schema import (
    DataCaptureType,
    PhaseNode,
    SignOffStep,
    SignOffType,
    StructureType,
)

CONTEXT = OperationContext(master_template_id=1, unit_procedure_id=2, operation_id=3)


def _identity(n):
    return Identity(f"g-{n}", f"l-{n}")


def _review_step(step_id=101, phase_id=100):
    leaves = [
        build_bookkeeping_step(step_id + 1, "l-r1", step_id, DataCaptureType.ITERATION_READY_FOR_REVIEW),
        build_bookkeeping_step(step_id + 2, "l-r2", step_id, DataCaptureType.ITERATION_COMPLETE),
    ]
    return build_iteration_review_step(step_id, _identity(step_id), CONTEXT, phase_id, 2, leaves)


# ============================================================================
# Leaves
# ============================================================================


class TestBookkeepingLeaves:
    """Structural leaves carry their kind-mandated flags."""

    def test_phase_complete_button_is_primary(self):
        step = build_bookkeeping_step(5, "l-5", 4, DataCaptureType.PHASE_COMPLETE_BUTTON)
        assert step.primary_step is True
        assert step.optional_step is False

    def test_structure_complete_is_auto_captured(self):
        wire = build_bookkeeping_step(5, "l-5", 4, "STRUCTURE_COMPLETE").to_dict()
        assert wire["type"] == "STRUCTURE_COMPLETE"
        assert wire["autoCaptured"] is True
        assert wire["primaryStep"] is True

    def test_overrides_are_optional(self):
        for step_type in (DataCaptureType.TRAINING_OVERRIDE, DataCaptureType.PREDECESSOR_OVERRIDE):
            assert build_bookkeeping_step(5, "l-5", 4, step_type).optional_step is True

    def test_rejects_non_bookkeeping_type(self):
        with pytest.raises(SchemaError):
            build_bookkeeping_step(5, "l-5", 4, DataCaptureType.SIGN_OFF)

    def test_wire_format_is_complete(self):
        wire = build_bookkeeping_step(5, "l-5", 4, DataCaptureType.TRAINING_OVERRIDE).to_dict()
        for key in (
            "allValuesCurrent",
            "configurationGroup",
            "appendToProductId",
            "replaceDefaultQuantity",
            "attachedToTableCell",
            "autoNaEnabled",
            "temporaryChange",
        ):
            assert wire[key] is False, key
        for key in (
            "dataCaptureRoles",
            "notificationRoleIds",
            "actionTriggers",
            "receivedDataProjections",
            "projectedDataProjections",
            "dataCaptureStepNotifications",
        ):
            assert wire[key] == [], key
        assert "globalSerialId" not in wire


class TestSignOff:
    """WITNESS and VERIFY differ only in signer uniqueness."""

    def test_witness_not_unique(self):
        step = build_sign_off(7, "l-7", 4, SignOffType.WITNESS)
        wire = step.to_dict()
        assert wire["type"] == "SIGN_OFF"
        assert wire["signOffType"] == "WITNESS"
        assert wire["uniqueSignOffRequired"] is False

    def test_verify_unique(self):
        wire = build_sign_off(7, "l-7", 4, "VERIFY").to_dict()
        assert wire["signOffType"] == "VERIFY"
        assert wire["uniqueSignOffRequired"] is True

    def test_verify_without_unique_signer_rejected(self):
        with pytest.raises(SchemaError, match="unique signer"):
            SignOffStep(id=7, local_reference_id="l-7", structure_id=4, sign_off_type=SignOffType.VERIFY)

    def test_unknown_sign_off_type_rejected(self):
        with pytest.raises(SchemaError):
            SignOffStep(id=7, local_reference_id="l-7", structure_id=4, sign_off_type="APPROVE")


class TestEntryLeaves:
    """Primary text / numeric leaves and notes."""

    def test_general_text_has_character_limit_trigger(self):
        wire = build_general_text(8, "l-8", 4, trigger_id=9, action_id=10).to_dict()
        assert wire["type"] == "GENERAL_TEXT"
        assert wire["primaryStep"] is True
        (trigger,) = wire["actionTriggers"]
        assert trigger["id"] == 9
        assert trigger["dataCaptureStepId"] == 8
        assert trigger["label"] == "Character Limit: "
        assert (trigger["minimumValue"], trigger["maximumValue"]) == (1, 120)
        assert trigger["triggerType"] == "OUT_OF_NUMERIC_RANGE"
        assert trigger["actions"] == [{"id": 10, "stepActionTriggerId": 9, "type": "REJECT"}]

    def test_general_text_empty_range_rejected(self):
        with pytest.raises(SchemaError, match="range is empty"):
            build_general_text(8, "l-8", 4, 9, 10, min_characters=50, max_characters=10)

    def test_general_numeric_defaults(self):
        wire = build_general_numeric(8, "l-8", 4).to_dict()
        assert wire["type"] == "GENERAL_NUMERIC"
        assert wire["decimalPrecision"] == 16
        assert wire["minDecimalPrecision"] == 0
        assert wire["precisionMethod"] == "DOWN"
        assert wire["scientificNotation"] is False
        assert wire["actionTriggers"] == []

    def test_notes_are_optional(self):
        wire = build_notes(8, "l-8", 4).to_dict()
        assert wire["type"] == "NOTES"
        assert wire["optionalStep"] is True
        assert wire["primaryStep"] is False

    @pytest.mark.parametrize("bad_id", [0, -3, True, "8", None])
    def test_bad_numeric_id_rejected(self, bad_id):
        with pytest.raises(SchemaError):
            build_notes(bad_id, "l-8", 4)

    def test_blank_local_reference_rejected(self):
        with pytest.raises(SchemaError):
            build_notes(8, "  ", 4)


# ============================================================================
# Structural nodes
# ============================================================================


class TestStructuralNodes:
    """Node constructors enforce linkage at construction."""

    def test_iteration_review_step(self):
        wire = _review_step().to_dict()
        assert wire["level"] == "PHASE_STEP"
        assert wire["type"] == "ITERATION_REVIEW"
        assert wire["phaseStepOrderNumber"] == 1000
        assert wire["phaseStepId"] == wire["id"] == 101
        assert wire["parentId"] == 100
        assert [leaf["type"] for leaf in wire["dataCaptureSteps"]] == [
            "ITERATION_READY_FOR_REVIEW",
            "ITERATION_COMPLETE",
        ]

    def test_data_entry_step(self):
        correction = build_correction_step(
            111, _identity(111), CONTEXT, 100, 2,
            phase_step_id=110, phase_step_order_number=1, data_capture_steps=[],
        )
        step = build_data_entry_step(
            110, _identity(110), "QC", CONTEXT, 100, 2,
            phase_step_order_number=1,
            correction=correction,
            data_capture_steps=[build_sign_off(112, "l-112", 110, SignOffType.WITNESS)],
            review_by_exception=True,
        )
        wire = step.to_dict()
        assert wire["type"] == "DATA_ENTRY"
        assert wire["structureDisplay"] == {"structureId": 110, "displayOrderNumber": 1}
        assert wire["alwaysDisplayedOnReviewByException"] is True
        (child,) = wire["children"]
        assert child["level"] == "SUB_PHASE_STEP"
        assert child["type"] == "CORRECTION"
        assert child["correctionType"] == "PRIMARY_DATA_ENTRY"
        assert child["parentId"] == 110

    def test_leaf_owned_by_other_node_rejected(self):
        with pytest.raises(SchemaError, match="structure_id"):
            build_iteration_review_step(
                101, _identity(101), CONTEXT, 100, 2,
                [build_bookkeeping_step(102, "l", 999, DataCaptureType.ITERATION_COMPLETE)],
            )

    def test_phase(self):
        phase = build_phase(100, _identity(100), "QC", CONTEXT, 2, children=[_review_step()], data_capture_steps=[])
        wire = phase.to_dict()
        assert wire["level"] == "PHASE"
        assert wire["type"] == "PARENT"
        assert wire["phaseId"] == 100
        assert wire["parentId"] == 3
        assert wire["phaseOrderNumber"] == 2
        assert wire["children"][0]["id"] == 101

    def test_phase_without_review_step_rejected(self):
        with pytest.raises(SchemaError, match="ITERATION_REVIEW"):
            build_phase(100, _identity(100), "QC", CONTEXT, 2, children=[], data_capture_steps=[])

    def test_phase_with_wrong_phase_id_rejected(self):
        with pytest.raises(SchemaError, match="phase_id"):
            PhaseNode(
                id=100,
                global_serial_id="g",
                local_reference_id="l",
                title="QC",
                children=[_review_step(phase_id=100)],
                parent_id=3,
                phase_id=99,
                **{k: v for k, v in CONTEXT.linkage(100, 2).items() if k != "phase_id"},
            )

    def test_child_level_checked(self):
        other_phase = build_phase(200, _identity(200), "X", CONTEXT, 3, [_review_step(201, 200)], [])
        with pytest.raises(SchemaError):
            build_phase(100, _identity(100), "QC", CONTEXT, 2, [_review_step(), other_phase], [])

    def test_review_step_type_is_iteration_review(self):
        assert _review_step().type is StructureType.ITERATION_REVIEW


class TestOperationContext:
    """Linkage derived from the baseline's ancestors."""

    def test_from_nodes(self, baseline):
        unit_procedure = baseline["children"][0]
        operation = unit_procedure["children"][0]
        context = OperationContext.from_nodes(baseline, unit_procedure, operation)
        assert context.master_template_id == 1
        assert context.unit_procedure_id == 2
        assert context.operation_id == 3
        assert context.phase_order_numbers == (1,)

    def test_falls_back_to_ancestor_ids(self, baseline):
        unit_procedure = baseline["children"][0]
        operation = unit_procedure["children"][0]
        del operation["masterTemplateId"]
        del operation["unitProcedureId"]
        context = OperationContext.from_nodes(baseline, unit_procedure, operation)
        assert (context.master_template_id, context.unit_procedure_id) == (1, 2)

    def test_unresolvable_linkage(self, baseline):
        operation = baseline["children"][0]["children"][0]
        del operation["unitProcedureId"]
        with pytest.raises(InvariantViolation):
            OperationContext.from_nodes(baseline, None, operation)

    def test_review_phase_excluded_by_type(self, baseline):
        unit_procedure = baseline["children"][0]
        operation = unit_procedure["children"][0]
        operation["children"][1]["phaseOrderNumber"] = 9
        context = OperationContext.from_nodes(baseline, unit_procedure, operation)
        assert context.phase_order_numbers == (1,)
