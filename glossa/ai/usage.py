"""
Usage Normalization

Turns a vendor's raw usage payload into {category: {total, breakdown}}
using the model's "usage" map from models.yaml, for example:

    usage:
      tokens:
        total: total_tokens
        breakdown:
          prompt: prompt_tokens
          completion: completion_tokens

All vendor knowledge lives in that map; this module only walks dot paths.
"""

import math
import re
from typing import Any, Dict, Optional

NUMERIC_PATTERN = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


def get_int(data: Any, path: str) -> int:
    """
    Return the value at a dot path as int, or 0.

    Numbers and numeric strings are converted; anything else (missing keys,
    "12x", lists, booleans, values without a finite integer value) becomes 0.

    Example:
        >>> get_int({"a": {"b": "12"}}, "a.b")
        12
        >>> get_int({"a": {"b": "12x"}}, "a.b")
        0
    """
    value = data
    for part in path.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
            value = value[int(part)]
        else:
            return 0

    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str) and NUMERIC_PATTERN.match(value):
        value = float(value)
    # "1e400", Infinity and NaN have no integer value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return 0


def extract_usage(model_config: Dict[str, Any], raw_usage: Optional[Any]) -> Dict[str, Dict[str, Any]]:
    """
    Normalize raw usage with the model's usage map.

    Returns an empty dict when the model has no map or the vendor sent no usage.
    """
    usage_map = model_config.get("usage") if isinstance(model_config, dict) else None
    if not usage_map or raw_usage is None:
        return {}

    result = {}
    for category, spec in usage_map.items():
        if not isinstance(spec, dict):
            continue
        total_path = spec.get("total")
        breakdown = {
            label: get_int(raw_usage, path)
            for label, path in (spec.get("breakdown") or {}).items()
        }
        result[category] = {
            "total": get_int(raw_usage, total_path) if total_path else 0,
            "breakdown": breakdown,
        }
    return result
