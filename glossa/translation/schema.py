"""
JSON Schema Capture

Shape-only descriptors of JSON values, used to prove a translation kept the
structure of the document:
- capture(): value -> descriptor (type tags, lists, key maps)
- validate(): compare two descriptors
- apply_repairs(): opt-in fixes for known vendor mistakes
"""

import copy
from typing import Any, Iterable, List, Optional

from glossa.translation.validator import ValidationResult

REPAIR_MISSING_NULLS = "repair_missing_nulls"

KNOWN_REPAIRS = {REPAIR_MISSING_NULLS}

MISMATCH_MESSAGE = "Structure mismatch after translation"


def capture(value: Any) -> Any:
    """
    Reduce a parsed JSON value to its shape.

    Example:
        >>> capture({"name": "X", "tags": ["a", 1]})
        {'name': 'string', 'tags': ['string', 'integer']}
    """
    if isinstance(value, dict):
        return {key: capture(child) for key, child in value.items()}
    if isinstance(value, list):
        return [capture(child) for child in value]
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    return "string"


def _first_difference(before: Any, after: Any, path: str) -> Optional[str]:
    if isinstance(before, dict) and isinstance(after, dict):
        for key in before:
            if key not in after:
                return f"{path}.{key}"
        for key in after:
            if key not in before:
                return f"{path}.{key}"
        for key in before:
            found = _first_difference(before[key], after[key], f"{path}.{key}")
            if found:
                return found
        return None
    if isinstance(before, list) and isinstance(after, list):
        if len(before) != len(after):
            return path
        for index, (b, a) in enumerate(zip(before, after)):
            found = _first_difference(b, a, f"{path}[{index}]")
            if found:
                return found
        return None
    return None if before == after else path


def validate(before: Any, after: Any) -> ValidationResult:
    """Compare two captured shapes; any difference is one failure."""
    if before == after:
        return ValidationResult.success()
    where = _first_difference(before, after, "$")
    message = f"{MISMATCH_MESSAGE} at {where}" if where else MISMATCH_MESSAGE
    return ValidationResult.failure([message])


def _repair_missing_nulls(before: Any, after: Any) -> Any:
    if isinstance(before, dict) and isinstance(after, dict):
        repaired = {}
        # Keep the original key order, then anything the vendor added
        for key, original in before.items():
            if key in after:
                repaired[key] = _repair_missing_nulls(original, after[key])
            elif original is None:
                repaired[key] = None
        for key, value in after.items():
            if key not in repaired and key not in before:
                repaired[key] = value
        return repaired

    if isinstance(before, list) and isinstance(after, list):
        repaired = [
            _repair_missing_nulls(before[i], after[i]) if i < len(before) else after[i]
            for i in range(len(after))
        ]
        repaired.extend(None for original in before[len(after):] if original is None)
        return repaired

    return after


def apply_repairs(before: Any, after: Any, features: Optional[Iterable[str]] = None) -> Any:
    """
    Repair a translated JSON value against the original.

    Args:
        before: Parsed original document
        after: Parsed translated document
        features: Repairs to run, e.g. [REPAIR_MISSING_NULLS]

    Returns:
        A repaired copy of after (after itself if no feature is enabled)

    REPAIR_MISSING_NULLS puts back keys and trailing list slots whose
    original value was null and that the vendor dropped. Non-null values
    are never invented.
    """
    features = set(features or [])
    if not features:
        return after

    repaired = copy.deepcopy(after)
    if REPAIR_MISSING_NULLS in features:
        repaired = _repair_missing_nulls(before, repaired)
    return repaired


def unknown_repairs(features: Iterable[str]) -> List[str]:
    return [f for f in features if f not in KNOWN_REPAIRS]
