"""
Request interpreter: maps a free-form instruction to a structured edit.

Only phase creation is recognized. Anything else yields ``Unrecognized``,
which callers must treat as "no structural change" rather than a failure.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from engine.errors import MalformedInstruction

logger = logging.getLogger(__name__)

# Clauses that end a phase title: "with ...", "that ...", "in operation 7", ...
_QUALIFIER = r"(?:with|that|which|(?:in|to|into|under)\s+(?:the\s+)?operation)\b"
_TITLE_END = r"(?=\s*,?\s+" + _QUALIFIER + r"|\s*[.;!?](?:\s|$)|\s*$)"

ADD_PHASE_PATTERN = re.compile(
    r"\badd\s+(?:a\s+new\s+|a\s+|an\s+|another\s+|new\s+)?phase\b(?!\s+step)"
    r"\s*(?:(?:called|named|titled)\b\s*)?"
    r"(?P<title>(?!" + _QUALIFIER + r").*?)" + _TITLE_END,
    re.IGNORECASE,
)
PHASE_STEP_PATTERN = re.compile(
    r"\bphase\s+step\s+(?:called|named|titled)\b\s*(?P<title>(?!" + _QUALIFIER + r").*?)" + _TITLE_END,
    re.IGNORECASE,
)
OPERATION_PATTERN = re.compile(r"\b(?:in|to|into|under)\s+(?:the\s+)?operation\s+#?(?P<operation_id>\d+)\b", re.IGNORECASE)

WITNESS_PATTERN = re.compile(r"\bwitness(?:es|ed)?\b", re.IGNORECASE)
VERIFY_PATTERN = re.compile(r"\bverif(?:y|ied|ication)\b", re.IGNORECASE)
NOTES_PATTERN = re.compile(r"\bnotes?\b", re.IGNORECASE)
RBE_PATTERN = re.compile(r"\bdisplay(?:ed)?\s+on\s+rbe\b|\breview\s+by\s+exception\b", re.IGNORECASE)
DATA_ENTRY_PATTERN = re.compile(r"\bgeneral\s+text\b|\bphase\s+step\b|\bdata\s+entry\b|\btext\s+entry\b", re.IGNORECASE)
NUMERIC_PATTERN = re.compile(r"\bnumeric\b|\bnumber\s+entry\b", re.IGNORECASE)

_TITLE_STRIP = " \t\"'`“”‘’,:;"


@dataclass(frozen=True)
class PhaseOptions:
    """Feature flags of a requested phase."""

    witness: bool = False
    verify: bool = False
    notes: bool = False
    review_by_exception: bool = False
    data_entry: bool = False
    numeric: bool = False

    @property
    def wants_data_entry(self) -> bool:
        """Sign-offs, notes and numeric entry all need a data-entry step to live on."""
        return self.data_entry or self.witness or self.verify or self.notes or self.numeric


@dataclass(frozen=True)
class EditIntent:
    title: str
    options: PhaseOptions
    operation_id: Optional[int] = None


@dataclass(frozen=True)
class Recognized:
    intent: EditIntent


@dataclass(frozen=True)
class Unrecognized:
    instruction: str
    reason: str


ParseResult = Union[Recognized, Unrecognized]


def _clean_title(raw: str) -> str:
    return re.sub(r"\s+", " ", raw).strip(_TITLE_STRIP)


def parse_options(instruction: str) -> PhaseOptions:
    return PhaseOptions(
        witness=bool(WITNESS_PATTERN.search(instruction)),
        verify=bool(VERIFY_PATTERN.search(instruction)),
        notes=bool(NOTES_PATTERN.search(instruction)),
        review_by_exception=bool(RBE_PATTERN.search(instruction)),
        data_entry=bool(DATA_ENTRY_PATTERN.search(instruction)),
        numeric=bool(NUMERIC_PATTERN.search(instruction)),
    )


def parse_instruction(instruction: str) -> ParseResult:
    """
    Parse an instruction such as ``"add a phase called QC with witness and verify"``.

    Raises:
        MalformedInstruction: a phase-creation phrase matched but the title is empty
    """
    text = (instruction or "").strip()
    if not text:
        return Unrecognized(instruction=instruction or "", reason="No modification requested")

    match = ADD_PHASE_PATTERN.search(text) or PHASE_STEP_PATTERN.search(text)
    if not match:
        logger.info("No matching modification pattern found")
        return Unrecognized(instruction=text, reason="No matching modification pattern found")

    title = _clean_title(match.group("title"))
    if not title:
        raise MalformedInstruction(text)

    operation_match = OPERATION_PATTERN.search(text)
    operation_id = int(operation_match.group("operation_id")) if operation_match else None

    options = parse_options(text)
    logger.info(
        f'Adding phase: "{title}" (witness: {options.witness}, verify: {options.verify}, '
        f"notes: {options.notes}, dataEntry: {options.wants_data_entry}, "
        f"numeric: {options.numeric}, displayOnRBE: {options.review_by_exception})"
    )
    return Recognized(EditIntent(title=title, options=options, operation_id=operation_id))
