"""
Document finalizer.

Every clone handed back to the consuming system needs a complete set of new
identity tokens, because that system treats globalSerialId / localReferenceId
as unique across its whole store. Numeric ids are never touched here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from engine.identifiers import mint_token

IDENTITY_TOKEN_FIELDS = frozenset({"globalSerialId", "localReferenceId"})


def regenerate_identity_tokens(value: Any, mint: Callable[[], str] = mint_token) -> Any:
    """Return a copy of value with every identity-token field replaced, at any depth."""
    if isinstance(value, dict):
        return {
            key: (mint() if key in IDENTITY_TOKEN_FIELDS else regenerate_identity_tokens(item, mint))
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [regenerate_identity_tokens(item, mint) for item in value]
    return value


def stamp_generation(document: Dict[str, Any], generated_at: datetime) -> Dict[str, Any]:
    """
    Mark the document title and product code with the generation date, in place.

    Each finalization appends its own stamp, so a regenerated clone of an
    already generated document shows both dates.
    """
    date = generated_at.strftime("%Y-%m-%d")
    if document.get("title"):
        document["title"] = f"{document['title']} (Generated {date})"

    details = document.get("masterTemplateDetails")
    if isinstance(details, dict) and details.get("productId"):
        details["productId"] = f"{details['productId']}-GEN-{date}"
    return document


def finalize(
    document: Dict[str, Any],
    now: Optional[datetime] = None,
    mint: Callable[[], str] = mint_token,
) -> Dict[str, Any]:
    """Return a finalized copy: fresh identity tokens everywhere plus the generation stamp."""
    finalized = regenerate_identity_tokens(document, mint)
    return stamp_generation(finalized, now or datetime.now(timezone.utc))
