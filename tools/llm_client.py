"""Anthropic client for the free-form template edit fallback."""

import os
from typing import Any, Dict, Iterable, Optional

from anthropic import Anthropic

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 24000


def _join_text_blocks(blocks: Iterable[Any]) -> str:
    """Concatenate the text of SDK content blocks (objects or plain dicts)."""
    parts = []
    for block in blocks or []:
        if hasattr(block, 'text'):
            parts.append(block.text)
        elif isinstance(block, dict) and 'text' in block:
            parts.append(block['text'])
    return "".join(parts)


class LLMClientWrapper:
    """Single-turn prompt interface over an Anthropic client."""

    def __init__(self, client: Anthropic, model: str = DEFAULT_MODEL):
        self.client = client
        self.model = model

    def invoke_with_prompt(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        model: Optional[str] = None,
    ) -> str:
        """
        Send one user message under a system prompt and return the reply text.

        Args:
            system_prompt: Edit rules for the model
            user_prompt: Baseline template plus the user's request
            temperature: Sampling temperature; SDK default when None
            max_tokens: Reply budget (template replies are large)
            model: Per-call model override

        Returns:
            Reply text, empty when the model returned no text blocks
        """
        params: Dict[str, Any] = {
            "model": model or self.model,
            "max_tokens": max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if temperature is not None:
            params["temperature"] = temperature

        response = self.client.messages.create(**params)
        return _join_text_blocks(getattr(response, 'content', None))


_wrapper: Optional[LLMClientWrapper] = None


def _api_key(config: Dict[str, Any]) -> str:
    return config.get('ANTHROPIC_API_KEY') or os.getenv('ANTHROPIC_API_KEY', '')


def get_llm_client(config: Optional[Dict[str, Any]] = None) -> LLMClientWrapper:
    """Return the process-wide wrapper, creating it from config on first use."""
    global _wrapper
    config = config or {}
    if _wrapper is None:
        api_key = _api_key(config)
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")
        client = Anthropic(
            api_key=api_key,
            base_url=config.get('ANTHROPIC_BASE_URL') or None,
            timeout=float(config.get('LLM_TIMEOUT', 300)),
            max_retries=int(config.get('LLM_MAX_RETRIES', 2)),
        )
        _wrapper = LLMClientWrapper(client, model=config.get('LLM_MODEL') or DEFAULT_MODEL)
    return _wrapper


def is_llm_available(config: Optional[Dict[str, Any]] = None) -> bool:
    """True when an Anthropic API key is configured."""
    return bool(_api_key(config or {}))
