import copy
import json
import os
from pathlib import Path
from typing import Dict, Any, Optional

from glossa.logger import get_logger

logger = get_logger(__name__)

# Get base directory (project root)
BASE_DIR = Path(__file__).parent.parent
CONFIG_DIR = Path(os.environ.get("GLOSSA_CONFIG_DIR", BASE_DIR / "config"))
CONFIG_FILE = CONFIG_DIR / "config.json"

# Bundled declarative resources
RESOURCES_DIR = Path(__file__).parent / "resources"
MODELS_FILE = RESOURCES_DIR / "models.yaml"
PROMPTS_FILE = RESOURCES_DIR / "prompts.yaml"

SUPPORTED_FORMATS = ["text", "html", "json"]
LOG_MODES = ["off", "info", "debug"]

# Environment variable -> top-level config key
ENV_OVERRIDES = {
    "GLOSSA_LOG_MODE": "log_mode",
    "GLOSSA_PROXY": "proxy",
    "GLOSSA_MODELS_FILE": "models_file",
    "GLOSSA_PROMPTS_FILE": "prompts_file",
}

# Default configuration template
DEFAULT_CONFIG = {
    "log_mode": "off",
    "proxy": None,
    "models_file": None,   # None -> bundled resources/models.yaml
    "prompts_file": None,  # None -> bundled resources/prompts.yaml
    "http": {
        "timeout": 120
    },
    "translation": {
        "filters": [],
        "validate": True,
        "repairs": [],
        "prompt_key": "translator",
        "length_check": True,
        "length_overhead_chars": 2000,
        "length_reserve_pct": 20
    },
    "web": {
        "host": "0.0.0.0",
        "port": 5500
    }
}


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge override into a copy of base.

    Nested dicts are merged key by key; any other value in override replaces
    the one in base.

    Example:
        >>> deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}})
        {'a': {'x': 1, 'y': 3}}
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _apply_env_overrides(config: Dict[str, Any], environ=None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    for env_name, key in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            config[key] = value
            logger.debug(f"Config key '{key}' overridden from ${env_name}")
    return config


def load_config(path: Optional[Path] = None, environ=None) -> Dict[str, Any]:
    """
    Load the configuration.

    Reads the JSON config file (if present) and merges it over DEFAULT_CONFIG,
    then applies environment overrides. A broken file never stops the
    application: the error is logged and defaults are used.

    Args:
        path: Config file to read, defaults to config/config.json
        environ: Mapping used for environment overrides, defaults to os.environ

    Returns:
        Merged configuration dict
    """
    config_path = Path(path) if path else CONFIG_FILE
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
            if isinstance(file_config, dict):
                config = deep_merge(config, file_config)
                logger.debug(f"Configuration loaded from {config_path}")
            else:
                logger.error(f"Config file {config_path} must contain a JSON object")
                logger.warning("Using default configuration")
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse config file {config_path}: {e}")
            logger.warning("Using default configuration")
        except OSError as e:
            logger.error(f"Failed to read config file {config_path}: {e}")
            logger.warning("Using default configuration")

    return _apply_env_overrides(config, environ)


def save_config(config: Dict[str, Any], path: Optional[Path] = None):
    """Save the configuration to the JSON config file."""
    config_path = Path(path) if path else CONFIG_FILE
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w', encoding='utf-8') as f:
            json.dump(config, f, indent=4, ensure_ascii=False)
        logger.info(f"Configuration saved to {config_path}")
    except OSError as e:
        logger.error(f"Failed to save config to {config_path}: {e}")
        raise


def get_resource_path(config: Dict[str, Any], name: str) -> Path:
    """
    Resolve the path of a declarative resource ("models" or "prompts").

    A path set in the config wins over the bundled file.
    """
    configured = config.get(f"{name}_file")
    if configured:
        return Path(configured)
    if name == "models":
        return MODELS_FILE
    if name == "prompts":
        return PROMPTS_FILE
    raise ValueError(f"Unknown resource: {name}")
