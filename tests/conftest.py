"""
Shared fixtures for the template engine and service tests.

The baseline document mirrors the shape of a real exported master template:
one UNIT_PROCEDURE, one OPERATION, a data-entry phase "A" (order 1) and the
terminal review phase (order 1000). The highest numeric id in it is 50, held
by an action trigger nested inside a leaf, so id allocation must scan leaves.
"""

import json
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List

import pytest

FIXED_NOW = datetime(2025, 3, 14, 9, 26, 53, tzinfo=timezone.utc)


def _tokens(serial: int) -> Dict[str, str]:
    return {
        "globalSerialId": f"gsid-{serial:04d}",
        "localReferenceId": f"lrid-{serial:04d}",
    }


def _leaf(leaf_id: int, structure_id: int, step_type: str, **extra: Any) -> Dict[str, Any]:
    leaf = {
        "id": leaf_id,
        "localReferenceId": f"leaf-{leaf_id:04d}",
        "structureId": structure_id,
        "type": step_type,
        "primaryStep": False,
        "optionalStep": False,
        "actionTriggers": [],
    }
    leaf.update(extra)
    return leaf


def _linkage(phase_id: int, phase_order: int) -> Dict[str, int]:
    return {
        "masterTemplateId": 1,
        "unitProcedureId": 2,
        "operationId": 3,
        "phaseId": phase_id,
        "unitProcedureOrderNumber": 1,
        "operationOrderNumber": 1,
        "phaseOrderNumber": phase_order,
    }


def _iteration_review_step(step_id: int, phase_id: int, phase_order: int) -> Dict[str, Any]:
    return {
        "id": step_id,
        **_tokens(step_id),
        "title": "",
        "level": "PHASE_STEP",
        "type": "ITERATION_REVIEW",
        **_linkage(phase_id, phase_order),
        "phaseStepId": step_id,
        "phaseStepOrderNumber": 1000,
        "parentId": phase_id,
        "children": [],
        "dataCaptureSteps": [
            _leaf(step_id + 1, step_id, "ITERATION_READY_FOR_REVIEW"),
            _leaf(step_id + 2, step_id, "ITERATION_COMPLETE", primaryStep=True, autoCaptured=True),
        ],
    }


def build_baseline() -> Dict[str, Any]:
    """Return a fresh baseline PROCEDURE document."""
    text_leaf = _leaf(
        12,
        11,
        "GENERAL_TEXT",
        primaryStep=True,
        actionTriggers=[{
            "id": 50,
            "dataCaptureStepId": 12,
            "label": "Character Limit: ",
            "minimumValue": 1,
            "maximumValue": 120,
            "actions": [{"id": 49, "stepActionTriggerId": 50, "type": "REJECT"}],
        }],
    )
    data_entry = {
        "id": 11,
        **_tokens(11),
        "title": "Record lot number",
        "level": "PHASE_STEP",
        "type": "DATA_ENTRY",
        **_linkage(10, 1),
        "phaseStepId": 11,
        "phaseStepOrderNumber": 1,
        "parentId": 10,
        "structureDisplay": {"structureId": 11, "displayOrderNumber": 1},
        "children": [{
            "id": 13,
            **_tokens(13),
            "title": "",
            "level": "SUB_PHASE_STEP",
            "type": "CORRECTION",
            **_linkage(10, 1),
            "phaseStepId": 11,
            "parentId": 11,
            "children": [],
            "dataCaptureSteps": [],
        }],
        "dataCaptureSteps": [text_leaf],
    }
    phase_a = {
        "id": 10,
        **_tokens(10),
        "title": "A",
        "level": "PHASE",
        "type": "PARENT",
        **_linkage(10, 1),
        "parentId": 3,
        "children": [data_entry, _iteration_review_step(15, 10, 1)],
        "dataCaptureSteps": [],
    }
    review_phase = {
        "id": 20,
        **_tokens(20),
        "title": "Review",
        "level": "PHASE",
        "type": "ITERATION_REVIEW",
        **_linkage(20, 1000),
        "parentId": 3,
        "children": [_iteration_review_step(21, 20, 1000)],
        "dataCaptureSteps": [],
    }
    operation = {
        "id": 3,
        **_tokens(3),
        "title": "Operation 1",
        "level": "OPERATION",
        "type": "PARENT",
        "masterTemplateId": 1,
        "unitProcedureId": 2,
        "operationId": 3,
        "unitProcedureOrderNumber": 1,
        "operationOrderNumber": 1,
        "parentId": 2,
        "children": [phase_a, review_phase],
        "dataCaptureSteps": [],
    }
    unit_procedure = {
        "id": 2,
        **_tokens(2),
        "title": "Unit Procedure 1",
        "level": "UNIT_PROCEDURE",
        "type": "PARENT",
        "masterTemplateId": 1,
        "unitProcedureId": 2,
        "parentId": 1,
        "children": [operation],
        "dataCaptureSteps": [],
    }
    return {
        "id": 1,
        **_tokens(1),
        "title": "Wunder Drug",
        "level": "PROCEDURE",
        "type": "PARENT",
        "masterTemplateDetails": {"productId": "WD-5678"},
        "children": [unit_procedure],
        "dataCaptureSteps": [],
    }


def walk(node: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    """Yield every structural node depth-first, root included."""
    yield node
    for child in node.get("children") or []:
        yield from walk(child)


def collect(value: Any, key: str) -> List[Any]:
    """Every value stored under key in any mapping of the document."""
    found = []
    if isinstance(value, dict):
        if key in value:
            found.append(value[key])
        for item in value.values():
            found.extend(collect(item, key))
    elif isinstance(value, list):
        for item in value:
            found.extend(collect(item, key))
    return found


def assert_document_invariants(document: Dict[str, Any]) -> None:
    """End-to-end structural invariants every produced document must keep."""
    ids = collect(document, "id")
    duplicates = [value for value, count in Counter(ids).items() if count > 1]
    assert not duplicates, f"duplicate numeric ids: {duplicates}"

    for node in walk(document):
        for leaf in node.get("dataCaptureSteps") or []:
            assert leaf["structureId"] == node["id"], f"leaf {leaf['id']} is not owned by node {node['id']}"

        if node["level"] == "PHASE":
            assert node["phaseId"] == node["id"]
            reviews = [c for c in node["children"] if c["type"] == "ITERATION_REVIEW"]
            assert len(reviews) == 1, f"phase {node['id']} has {len(reviews)} review steps"
            assert reviews[0]["phaseStepOrderNumber"] == 1000

        if node["level"] == "PHASE_STEP" and node["type"] == "DATA_ENTRY":
            corrections = [c for c in node["children"] if c["type"] == "CORRECTION"]
            assert len(corrections) == 1
            assert node["structureDisplay"]["structureId"] == node["id"]


@pytest.fixture
def baseline() -> Dict[str, Any]:
    return build_baseline()


@pytest.fixture
def baseline_without_review() -> Dict[str, Any]:
    document = build_baseline()
    operation = document["children"][0]["children"][0]
    operation["children"] = [child for child in operation["children"] if child["type"] != "ITERATION_REVIEW"]
    return document


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def counting_mint():
    """Deterministic token factory: tok-0001, tok-0002, ..."""
    counter = iter(range(1, 1_000_000))
    return lambda: f"tok-{next(counter):04d}"


@pytest.fixture
def invariants():
    return assert_document_invariants


@pytest.fixture
def templates_dir(tmp_path: Path) -> Path:
    """Temporary templates directory holding one baseline and one broken template."""
    directory = tmp_path / "templates"
    directory.mkdir()
    (directory / "baseline-wunder_drug.mt").write_text(json.dumps(build_baseline()), encoding="utf-8")
    broken = build_baseline()
    operation = broken["children"][0]["children"][0]
    operation["children"] = operation["children"][:1]
    (directory / "no-review.mt").write_text(json.dumps(broken), encoding="utf-8")
    return directory

