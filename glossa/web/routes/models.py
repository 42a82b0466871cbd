"""Model registry and prompt catalog API routes."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from glossa.logger import get_logger

models_bp = Blueprint("models", __name__)
logger = get_logger(__name__)


def describe_model(registry, key: str) -> dict:
    model = registry.get(key) or {}
    return {
        "key": key,
        "vendor": model.get("vendor"),
        "name": model.get("name"),
        "formats": registry.get_formats(key),
        "endpoint": registry.get_endpoint(key),
        "char_limit": registry.get_char_limit(key),
        "auth_env": registry.get_auth_env(key),
        "help_url": registry.get_help_url(key),
        "variables": registry.get_variables(key),
        "notes": registry.get_notes(key),
    }


@models_bp.get("/models")
def list_models():
    """List every model in the registry."""
    registry = current_app.extensions["glossa"].registry
    return jsonify({"models": [describe_model(registry, key) for key in registry.list()]})


@models_bp.get("/models/<path:model_key>")
def get_model(model_key: str):
    registry = current_app.extensions["glossa"].registry
    if not registry.has(model_key):
        logger.warning("Model %s not found", model_key)
        return jsonify({"error": f"Unknown model key: {model_key}", "code": "unknown_model"}), 404
    return jsonify(describe_model(registry, model_key))


@models_bp.get("/prompts")
def list_prompts():
    """List prompt kinds with their formats and notes."""
    prompts = current_app.extensions["glossa"].prompts
    return jsonify({"prompts": prompts.list()})
