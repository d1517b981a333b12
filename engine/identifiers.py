"""Numeric id allocation and identity token minting."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)


def mint_token() -> str:
    """Return a fresh random UUID4 string for an identity-token field."""
    return str(uuid4())


@dataclass(frozen=True)
class Identity:
    """globalSerialId / localReferenceId pair carried by every structural node."""

    global_serial_id: str
    local_reference_id: str


def max_numeric_id(document: Any) -> int:
    """
    Return the largest integer ``id`` anywhere in the document, or 0.

    Every mapping is inspected, not only nodes and data capture steps, so ids
    on nested action triggers and actions are never handed out again.
    """
    highest = 0

    def _scan(value: Any) -> None:
        nonlocal highest
        if isinstance(value, dict):
            candidate = value.get("id")
            if isinstance(candidate, int) and not isinstance(candidate, bool):
                highest = max(highest, candidate)
            for item in value.values():
                _scan(item)
        elif isinstance(value, list):
            for item in value:
                _scan(item)

    _scan(document)
    return highest


class IdAllocator:
    """
    Hands out numeric ids for a single edit.

    One allocator belongs to one edit: seed it from the document being edited
    and discard it afterwards. A later edit must build a new allocator from the
    then-current document.
    """

    def __init__(self, seed: int = 0, token_factory: Optional[Callable[[], str]] = None):
        if seed < 0:
            raise ValueError(f"seed must be non-negative, got {seed}")
        self._last = seed
        self._token_factory = token_factory or mint_token

    @classmethod
    def from_document(cls, document: Any, token_factory: Optional[Callable[[], str]] = None) -> "IdAllocator":
        seed = max_numeric_id(document)
        logger.info(f"Max ID found: {seed}")
        return cls(seed, token_factory=token_factory)

    @property
    def last_id(self) -> int:
        """Most recently issued id (the seed when nothing was issued yet)."""
        return self._last

    def next_id(self) -> int:
        self._last += 1
        return self._last

    def mint_token(self) -> str:
        return self._token_factory()

    def mint_identity(self) -> Identity:
        return Identity(global_serial_id=self._token_factory(), local_reference_id=self._token_factory())
