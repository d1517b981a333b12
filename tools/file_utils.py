"""File utility functions."""

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


def resolve_path(path_str: str, base_dir: Optional[Path] = None) -> Path:
    """Resolve and expand path, anchoring relative paths at base_dir when given."""
    path = Path(path_str).expanduser()
    if not path.is_absolute() and base_dir is not None:
        path = base_dir / path
    return path.resolve()


def display_name_from_id(template_id: str) -> str:
    """Turn 'baseline-wunder_drug' into 'Wunder Drug'."""
    stem = re.sub(r"^baseline-", "", template_id)
    words = [word for word in re.split(r"[-_]", stem) if word]
    return " ".join(word[0].upper() + word[1:] for word in words)


def generated_filename(template_id: str, now: Optional[datetime] = None) -> str:
    """Download name for a generated template: <id>-YYYY-MM-DD_HH-MM-SS.mt"""
    now = now or datetime.now(timezone.utc)
    return f"{template_id}-{now.strftime('%Y-%m-%d_%H-%M-%S')}.mt"
