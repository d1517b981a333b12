"""Template listing and generation API."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from anthropic import APIError
from flask import Blueprint, jsonify, request

from app.ai_fallback import AIEditError, load_edit_prompt, request_ai_edit
from app.template_library import TemplateLibrary, TemplateNotFoundError
from engine.errors import (
    InvariantViolation,
    MalformedInstruction,
    MutationError,
    TargetNotFound,
)
from engine.mutator import mutate, regenerate
from tools.file_utils import generated_filename
from tools.llm_client import LLMClientWrapper, get_llm_client, is_llm_available

logger = logging.getLogger(__name__)

templates_bp = Blueprint('templates', __name__)

# Module-level state (initialized in init_template_routes)
_config: Dict[str, Any] = {}
_library: Optional[TemplateLibrary] = None
_llm_client: Optional[LLMClientWrapper] = None


def init_template_routes(config: Dict[str, Any], llm_client: Optional[LLMClientWrapper] = None):
    """Initialize template routes with dependencies."""
    global _config, _library, _llm_client
    _config = config
    _library = TemplateLibrary(config['TEMPLATES_DIR'], display_names=config.get('TEMPLATE_NAMES'))
    _llm_client = llm_client
    logger.info(f"Template routes initialized (templates: {config['TEMPLATES_DIR']})")


def _fallback_enabled() -> bool:
    if not _config.get('LLM_FALLBACK_ENABLED'):
        return False
    return _llm_client is not None or is_llm_available(_config)


def _ai_edit(baseline: Dict[str, Any], instruction: str) -> Dict[str, Any]:
    client = _llm_client or get_llm_client(_config)
    system_prompt = load_edit_prompt(_config['PROMPTS_DIR'])
    return request_ai_edit(
        baseline,
        instruction,
        client,
        system_prompt,
        max_tokens=_config.get('LLM_MAX_TOKENS', 24000),
    )


@templates_bp.route("/api/templates", methods=["GET"])
def list_templates():
    """List all available templates."""
    try:
        return jsonify(_library.list_templates())
    except OSError:
        logger.exception("Error reading templates")
        return jsonify({"error": "Failed to load templates"}), 500


@templates_bp.route("/api/templates/<template_id>", methods=["GET"])
def get_template(template_id: str):
    try:
        return jsonify(_library.load(template_id))
    except TemplateNotFoundError:
        return jsonify({"error": "Template not found"}), 404
    except (OSError, json.JSONDecodeError):
        logger.exception(f"Error loading template {template_id}")
        return jsonify({"error": "Failed to load template"}), 500


@templates_bp.route("/api/generate", methods=["POST"])
def generate():
    """Generate a modified copy of a baseline template with fresh identity tokens."""
    payload = request.get_json(force=True, silent=True) or {}
    template_id = str(payload.get("templateId") or "").strip()
    instruction = str(payload.get("request") or "")

    if not template_id:
        return jsonify({"error": "Template ID is required"}), 400

    try:
        baseline = _library.load(template_id)
    except TemplateNotFoundError:
        return jsonify({"error": "Template not found"}), 404
    except (OSError, json.JSONDecodeError):
        logger.exception(f"Error loading template {template_id}")
        return jsonify({"error": "Failed to load template"}), 500

    now = datetime.now(timezone.utc)
    try:
        result = mutate(baseline, instruction, now=now)
    except MalformedInstruction as exc:
        return jsonify({"error": exc.message, **exc.to_dict()}), 400
    except (TargetNotFound, InvariantViolation) as exc:
        logger.warning(f"Cannot apply '{instruction}' to {template_id}: {exc.message}")
        return jsonify({"error": exc.message, **exc.to_dict()}), 422
    except MutationError as exc:
        logger.exception(f"Error generating template {template_id}")
        return jsonify({"error": "Failed to generate template", **exc.to_dict()}), 500

    document = result.document
    modified = result.applied
    message = result.message
    ai_error = None

    if not result.applied and instruction.strip() and _fallback_enabled():
        try:
            document = regenerate(_ai_edit(baseline, instruction), now=now)
            modified = True
            message = "Template modified by AI"
        except (AIEditError, APIError, FileNotFoundError, ValueError) as exc:
            logger.error(f"AI modification failed: {exc}")
            ai_error = str(exc)

    return jsonify({
        "success": True,
        "filename": generated_filename(template_id, now),
        "template": document,
        "modifiedByAI": modified,
        "aiError": ai_error,
        "message": message,
    })
