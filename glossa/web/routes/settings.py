"""Settings management API routes."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request

import glossa.config as config
from glossa.logger import get_logger, refresh_loggers

settings_bp = Blueprint("settings", __name__)
logger = get_logger(__name__)

# Keys that may be changed through the API
EDITABLE_KEYS = ["log_mode", "proxy", "http", "translation"]


def validate_config(new_config: Dict[str, Any]) -> Optional[str]:
    """Return an error message for an invalid settings payload, else None."""
    if not isinstance(new_config, dict):
        return "config must be an object"

    unknown = [key for key in new_config if key not in EDITABLE_KEYS]
    if unknown:
        return f"Unknown or read-only setting(s): {', '.join(unknown)}"

    if "log_mode" in new_config and new_config["log_mode"] not in config.LOG_MODES:
        return f"log_mode must be one of: {', '.join(config.LOG_MODES)}"

    if "proxy" in new_config and new_config["proxy"] is not None and not isinstance(new_config["proxy"], str):
        return "proxy must be a string or null"

    for section in ("http", "translation"):
        if section in new_config and not isinstance(new_config[section], dict):
            return f"{section} must be an object"

    translation = new_config.get("translation", {})
    if "filters" in translation and not isinstance(translation["filters"], list):
        return "translation.filters must be an array"
    if "repairs" in translation and not isinstance(translation["repairs"], list):
        return "translation.repairs must be an array"

    return None


def _config_path():
    return current_app.config.get("GLOSSA_CONFIG_PATH")


@settings_bp.get("/")
def get_settings():
    """Return current configuration merged over defaults."""
    current_config = config.load_config(_config_path())
    logger.debug("Settings retrieved")
    return jsonify({
        "config": current_config,
        "meta": {
            "log_modes": config.LOG_MODES,
            "formats": config.SUPPORTED_FORMATS,
            "editable_keys": EDITABLE_KEYS,
        },
    })


@settings_bp.put("/")
def update_settings():
    """Update editable configuration keys and persist them."""
    data = request.get_json(silent=True)
    if not data or "config" not in data:
        return jsonify({"error": "Request body must contain a 'config' object"}), 400

    new_config = data["config"]
    validation_error = validate_config(new_config)
    if validation_error:
        return jsonify({"error": validation_error}), 400

    current_config = config.load_config(_config_path())
    merged = config.deep_merge(current_config, new_config)
    try:
        config.save_config(merged, _config_path())
    except OSError as e:
        logger.error("Failed to save settings: %s", e)
        return jsonify({"error": f"Failed to save settings: {e}"}), 500

    if "log_mode" in new_config:
        refresh_loggers()
        logger.info("Log mode changed to %s", new_config["log_mode"])

    return jsonify({"config": merged})
