"""
Model Registry

Read-only view over models.yaml. The file groups models by vendor:

    openai:
      endpoint: https://api.openai.com/v1/chat/completions
      requirements: {...}
      models:
        gpt-4o:
          defaults: {model: gpt-4o}

Vendor entries with a "models" mapping are flattened into "vendor:model"
keys, each sub-config deep-merged over the vendor-level config. Entries
without "models" are used as they are.
"""

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from glossa.config import deep_merge
from glossa.logger import get_logger
from glossa.ai.exceptions import ConfigurationError
from glossa.ai.prompts import PromptCatalog
from glossa.ai.providers import DRIVERS, ModelDriver

logger = get_logger(__name__)


def flatten_models(data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Flatten vendor-grouped model definitions into "vendor:model" keys."""
    flat = {}
    for key, entry in data.items():
        if not isinstance(entry, dict):
            logger.warning(f"Skipping model entry '{key}': not a mapping")
            continue

        sub_models = entry.get("models")
        if not isinstance(sub_models, dict):
            flat[key] = entry
            continue

        base = {k: v for k, v in entry.items() if k != "models"}
        for sub_key, sub_config in sub_models.items():
            merged = deep_merge(base, sub_config if isinstance(sub_config, dict) else {})
            merged.setdefault("vendor", key)
            flat[f"{key}:{sub_key}"] = merged
    return flat


class ModelRegistry:
    """Lookup of model configs and their drivers by "vendor:model" key."""

    def __init__(self, models: Dict[str, Dict[str, Any]]):
        self._models = models

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ModelRegistry":
        return cls(flatten_models(data))

    @classmethod
    def from_file(cls, path) -> "ModelRegistry":
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(
                f"Model registry file not found: {path}",
                code="registry_missing",
                details={"path": str(path)},
            )
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Model registry is not valid YAML: {path}: {e}",
                code="registry_invalid",
                details={"path": str(path)},
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Model registry must contain a mapping: {path}",
                code="registry_invalid",
                details={"path": str(path)},
            )
        registry = cls.from_mapping(data)
        logger.debug(f"Loaded {len(registry.list())} model(s) from {path}")
        return registry

    def has(self, key: str) -> bool:
        return key in self._models

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return a copy of the model config, or None for unknown keys."""
        model = self._models.get(key)
        return copy.deepcopy(model) if model is not None else None

    def list(self) -> List[str]:
        return sorted(self._models)

    def get_all(self) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._models)

    def require(self, key: str) -> Dict[str, Any]:
        """Like get(), but unknown keys raise ConfigurationError."""
        model = self.get(key)
        if model is None:
            raise ConfigurationError(f"Unknown model key: {key}", code="unknown_model", details={"model": key})
        return model

    def _lookup(self, key: str, *path: str) -> Any:
        value: Any = self._models.get(key)
        for step in path:
            if not isinstance(value, dict):
                return None
            value = value.get(step)
        return value

    def get_endpoint(self, key: str) -> Optional[str]:
        return self._lookup(key, "endpoint")

    def get_format(self, key: str) -> Optional[str]:
        return self._lookup(key, "format")

    def get_formats(self, key: str) -> List[str]:
        """Declared formats ("text|html" style) as a list; empty if none declared."""
        fmt = self.get_format(key)
        if not fmt:
            return []
        return [part.strip() for part in str(fmt).split("|") if part.strip()]

    def get_char_limit(self, key: str) -> Optional[int]:
        limit = self._lookup(key, "limits", "estimated_max_chars")
        return int(limit) if limit is not None else None

    def get_auth_env(self, key: str) -> Optional[str]:
        return self._lookup(key, "requirements", "auth", "env")

    def get_help_url(self, key: str) -> Optional[str]:
        return self._lookup(key, "requirements", "auth", "help_url")

    def get_notes(self, key: str) -> Optional[str]:
        return self._lookup(key, "notes")

    def get_variables(self, key: str) -> Dict[str, str]:
        """Per-call variables the model needs, as {option_name: ENV_VAR}."""
        variables = self._lookup(key, "requirements", "variables")
        return dict(variables) if isinstance(variables, dict) else {}

    def get_driver(self, key: str, prompts: Optional[PromptCatalog] = None) -> ModelDriver:
        """
        Create the driver for a model.

        Raises:
            ConfigurationError: unknown model key or vendor without a driver
        """
        model = self._models.get(key)
        if model is None:
            raise ConfigurationError(f"Unknown model key: {key}", code="unknown_model", details={"model": key})

        vendor = model.get("vendor")
        driver_cls = DRIVERS.get(vendor)
        if driver_cls is None:
            raise ConfigurationError(
                f"No driver for vendor '{vendor}' (model {key})",
                code="unknown_vendor",
                details={"model": key, "vendor": vendor},
            )
        return driver_cls(prompts)
