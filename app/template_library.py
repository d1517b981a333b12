"""Read-only access to the baseline template files (*.mt)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from werkzeug.utils import secure_filename

from tools.file_utils import display_name_from_id

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".mt"


class TemplateNotFoundError(FileNotFoundError):
    """Requested baseline template does not exist."""
    pass


class TemplateLibrary:
    """Lists and loads baseline templates from a directory."""

    def __init__(self, templates_dir: str, display_names: Optional[Dict[str, str]] = None):
        self.templates_dir = Path(templates_dir)
        self.display_names = dict(display_names or {})

    def _template_path(self, template_id: str) -> Path:
        safe_id = secure_filename(template_id or "")
        if not safe_id or safe_id != template_id:
            raise TemplateNotFoundError(f"Template not found: {template_id}")
        return self.templates_dir / f"{safe_id}{TEMPLATE_SUFFIX}"

    def list_templates(self) -> List[Dict[str, str]]:
        """Return [{id, name, filename}] for every template file, sorted by id."""
        if not self.templates_dir.exists():
            logger.warning(f"Templates directory {self.templates_dir} does not exist")
            return []

        templates = []
        for path in sorted(self.templates_dir.glob(f"*{TEMPLATE_SUFFIX}")):
            template_id = path.stem
            templates.append({
                "id": template_id,
                "name": self.display_names.get(template_id) or display_name_from_id(template_id),
                "filename": path.name,
            })
        return templates

    def load(self, template_id: str) -> Dict[str, Any]:
        """Load and parse a template; the file itself is never written."""
        path = self._template_path(template_id)
        if not path.exists():
            raise TemplateNotFoundError(f"Template not found: {template_id}")
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
