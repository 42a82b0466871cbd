"""
Prompt Templates

Loads system prompt templates from YAML and renders them with literal
{name} substitution. The file maps kind -> format -> template:

    translator:
      notes: "Default translation prompt"
      text: "Translate from {source} to {target} ..."
      html: "..."
"""

import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from glossa.logger import get_logger
from glossa.ai.exceptions import ConfigurationError, FormatNotFound, TemplateNotFound

logger = get_logger(__name__)

VARIABLE_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

# Keys inside a kind that are metadata, not formats
META_KEYS = {"notes"}


class PromptCatalog:
    """Read-only collection of prompt templates."""

    def __init__(self, templates: Dict[str, Dict[str, Any]]):
        self._templates = templates

    @classmethod
    def from_file(cls, path) -> "PromptCatalog":
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(
                f"Prompts file not found: {path}",
                code="prompts_missing",
                details={"path": str(path)},
            )
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Prompts file is not valid YAML: {path}: {e}",
                code="prompts_invalid",
                details={"path": str(path)},
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Prompts file must contain a mapping: {path}",
                code="prompts_invalid",
                details={"path": str(path)},
            )
        logger.debug(f"Loaded {len(data)} prompt kind(s) from {path}")
        return cls(data)

    def render(self, kind: str, fmt: str, variables: Optional[Dict[str, Any]] = None) -> str:
        """
        Render a template.

        Each {name} with a matching variable is replaced by its value in a
        single pass; values are not re-scanned and unknown {name}s stay as-is.

        Raises:
            TemplateNotFound: kind is not defined
            FormatNotFound: kind exists but has no template for fmt
        """
        formats = self._templates.get(kind)
        if not isinstance(formats, dict):
            raise TemplateNotFound(f"Prompt template '{kind}' not found", details={"kind": kind})

        template = formats.get(fmt) if fmt not in META_KEYS else None
        if not isinstance(template, str):
            raise FormatNotFound(
                f"Prompt template '{kind}' has no format '{fmt}'",
                details={"kind": kind, "format": fmt},
            )

        values = {k: "" if v is None else str(v) for k, v in (variables or {}).items()}
        return VARIABLE_PATTERN.sub(lambda m: values.get(m.group(1), m.group(0)), template)

    def list(self) -> Dict[str, Dict[str, Any]]:
        """Return {kind: {"formats": [...], "notes": str or None}}."""
        listing = {}
        for kind, formats in self._templates.items():
            if not isinstance(formats, dict):
                continue
            listing[kind] = {
                "formats": [fmt for fmt, tpl in formats.items() if fmt not in META_KEYS and isinstance(tpl, str)],
                "notes": formats.get("notes"),
            }
        return listing
