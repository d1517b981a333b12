"""
Free-form template edits delegated to Anthropic.

Used only when the pattern-based engine does not recognize an instruction
and the fallback is switched on. The model's reply must still pass the
structural validator before it replaces the baseline.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict

from engine.validator import validate_document
from tools.llm_client import LLMClientWrapper

logger = logging.getLogger(__name__)

EDIT_PROMPT_FILE = "template_edit.txt"
JSON_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class AIEditError(RuntimeError):
    """The model reply could not be used as a template."""
    pass


def load_edit_prompt(prompts_dir: str) -> str:
    """Load the template-edit system prompt from config."""
    prompt_path = Path(prompts_dir) / EDIT_PROMPT_FILE
    if not prompt_path.exists():
        raise FileNotFoundError(f"Prompt template not found: {prompt_path}")
    return prompt_path.read_text(encoding="utf-8")


def extract_json(response_text: str) -> Dict[str, Any]:
    """Parse the JSON object in a reply, unwrapping a markdown code fence if present."""
    json_text = response_text.strip()
    fenced = JSON_FENCE.search(response_text)
    if fenced:
        json_text = fenced.group(1)
    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as exc:
        raise AIEditError(f"Model reply is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise AIEditError("Model reply is not a JSON object")
    return parsed


def request_ai_edit(
    document: Dict[str, Any],
    instruction: str,
    client: LLMClientWrapper,
    system_prompt: str,
    max_tokens: int = 24000,
) -> Dict[str, Any]:
    """
    Ask the model to apply instruction to document and return the validated result.

    Raises:
        AIEditError: unparseable reply or a reply that fails structural validation
    """
    logger.info("Sending request to Claude API...")
    user_prompt = (
        f"Baseline template:\n{json.dumps(document, indent=2)}\n\n"
        f"User request: {instruction}\n\n"
        "Return the modified template JSON only."
    )
    response_text = client.invoke_with_prompt(system_prompt, user_prompt, max_tokens=max_tokens)
    logger.info("Received response from Claude API")

    modified = extract_json(response_text)
    report = validate_document(modified)
    if not report.valid:
        logger.error(f"Validation errors: {report.errors}")
        raise AIEditError("Invalid template structure: " + ", ".join(report.errors))
    return modified
