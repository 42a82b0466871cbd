"""Translation API routes."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from flask import Blueprint, current_app, jsonify, request

from glossa.ai.exceptions import (
    AuthError,
    ConfigurationError,
    ResponseFormatError,
    TransportError,
    TranslationError,
    ValidationError,
)
from glossa.ai.service import resolve_api_key, resolve_variables
from glossa.logger import get_logger
from glossa.translation.manager import TranslationManager

translation_bp = Blueprint("translation", __name__)
logger = get_logger(__name__)

API_KEY_HEADER = "X-Api-Key"


def get_manager() -> TranslationManager:
    return current_app.extensions["glossa"]


def error_status(error: TranslationError) -> int:
    """HTTP status for a pipeline error."""
    if isinstance(error, AuthError):
        return 401
    if isinstance(error, (ConfigurationError, ValidationError)):
        return 400
    if isinstance(error, (TransportError, ResponseFormatError)):
        return 502
    return 500


def error_response(error: TranslationError):
    body: Dict[str, Any] = {"error": str(error), "code": error.code}
    if error.details:
        body["details"] = error.details
    errors = getattr(error, "errors", None)
    if errors:
        body["errors"] = errors
    return jsonify(body), error_status(error)


def _parse_filters(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(part).strip() for part in value if str(part).strip()]
    return []


@translation_bp.post("/translate")
def translate_document():
    """Translate one document synchronously."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}

    text = data.get("text")
    model_key = data.get("model")
    if not isinstance(text, str) or not text.strip():
        return jsonify({"error": "No input provided", "code": "missing_text"}), 400
    if not model_key:
        return jsonify({"error": "No model selected", "code": "missing_model"}), 400

    options = data.get("options") or {}
    if not isinstance(options, dict):
        return jsonify({"error": "options must be an object", "code": "invalid_options"}), 400

    extra_variables = data.get("variables") or {}
    if not isinstance(extra_variables, dict):
        return jsonify({"error": "variables must be an object", "code": "invalid_variables"}), 400

    repairs = data.get("repairs")
    if repairs is not None and (not isinstance(repairs, list)
                                or not all(isinstance(name, str) for name in repairs)):
        return jsonify({"error": "repairs must be a list of names", "code": "invalid_repairs"}), 400

    manager = get_manager()
    api_key = request.headers.get(API_KEY_HEADER) or resolve_api_key(manager.registry, model_key)
    variables = resolve_variables(manager.registry, model_key)
    variables.update(extra_variables)

    try:
        result = manager.translate(
            text,
            model_key,
            fmt=data.get("format", "text"),
            api_key=api_key,
            filters=_parse_filters(data.get("filters")),
            dry_run=bool(data.get("dry_run", False)),
            verbose=bool(data.get("verbose", False)),
            context=data.get("context"),
            prompt_key=data.get("prompt_key"),
            source_lang=data.get("source_lang"),
            target_lang=data.get("target_lang"),
            variables=variables,
            validate=data.get("validate"),
            repairs=repairs,
            options=options,
        )
    except TranslationError as e:
        logger.warning("Translation request failed: %s", e)
        return error_response(e)

    return jsonify(result.to_dict())
