"""
Translation Validation Module

Contains validators for checking content before and after translation:
- HTML structure (lxml/libxml2 error log)
- JSON syntax
- Prepared text length against model limits

Every validator returns a ValidationResult instead of raising; the pipeline
decides what a failure means.
"""

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from lxml import etree

from glossa.logger import get_logger

logger = get_logger(__name__)

# libxml2 reports HTML5 elements it does not know (section, nav, ...) as errors
UNKNOWN_TAG_PATTERN = re.compile(r"^Tag \S+ invalid")

# Rough characters-per-token ratio used when only token limits are known
CHARS_PER_TOKEN = 4

TAG_PATTERN = re.compile(r"<(/?)([A-Za-z][A-Za-z0-9-]*)\b[^<>]*?(/?)>")
SKIPPED_BLOCK_PATTERN = re.compile(r"<!--.*?-->|<(script|style)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)

VOID_ELEMENTS = {
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
}

# Elements whose end tag may be omitted
OPTIONAL_END_ELEMENTS = {
    "body", "colgroup", "dd", "dt", "head", "html", "li", "optgroup",
    "option", "p", "rp", "rt", "tbody", "td", "tfoot", "th", "thead", "tr",
}


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def failure(cls, errors: List[str]) -> "ValidationResult":
        return cls(valid=False, errors=list(errors))


class HtmlValidator:
    """
    Checks that an HTML document or fragment is structurally sound.

    Fragments are wrapped in a <div> so text and several top-level elements
    parse as one tree. Complete documents (<!DOCTYPE ...> or <html>) are
    parsed as they are.
    """

    def validate(self, content: str) -> ValidationResult:
        stripped = content.lstrip()
        lowered = stripped[:15].lower()
        is_document = lowered.startswith("<!doctype") or lowered.startswith("<html")
        markup = content if is_document else f"<div>{content}</div>"

        parser = etree.HTMLParser(recover=True)
        try:
            etree.fromstring(markup, parser)
        except (etree.XMLSyntaxError, etree.ParserError) as e:
            return ValidationResult.failure([f"HTML parse error: {e}"])

        errors = []
        for entry in parser.error_log:
            message = entry.message.strip()
            if UNKNOWN_TAG_PATTERN.match(message):
                continue
            errors.append(f"Line {entry.line}: {message}")

        if not errors:
            errors = check_tag_balance(content)

        if errors:
            logger.debug(f"HTML validation found {len(errors)} error(s)")
            return ValidationResult.failure(errors)
        return ValidationResult.success()


def check_tag_balance(content: str) -> List[str]:
    """
    Flat end-tag check for markup the parser silently recovered.

    An end tag must close an open element; elements left open between it
    and its start tag must be ones whose end tag is optional.

    Example:
        >>> check_tag_balance("<p><strong>oops</p>")
        ['Line 1: Opening and ending tag mismatch: p and strong']
    """
    markup = SKIPPED_BLOCK_PATTERN.sub(lambda m: "\n" * m.group(0).count("\n"), content)
    errors = []
    stack = []

    for match in TAG_PATTERN.finditer(markup):
        closing, name, self_closing = match.group(1), match.group(2).lower(), match.group(3)
        if not closing:
            if name not in VOID_ELEMENTS and not self_closing:
                stack.append(name)
            continue
        if name in VOID_ELEMENTS:
            continue

        line = markup.count("\n", 0, match.start()) + 1
        if name not in stack:
            errors.append(f"Line {line}: Unexpected end tag : {name}")
            continue

        while stack[-1] != name:
            inner = stack.pop()
            if inner not in OPTIONAL_END_ELEMENTS:
                errors.append(f"Line {line}: Opening and ending tag mismatch: {name} and {inner}")
        stack.pop()

    return errors


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON constant: {name}")


def load_strict(content: str) -> Any:
    """Parse RFC 8259 JSON; NaN, Infinity and -Infinity are rejected."""
    return json.loads(content, parse_constant=_reject_constant)


class JsonValidator:
    """Strict JSON syntax check."""

    def validate(self, content: str) -> ValidationResult:
        try:
            load_strict(content)
        except RecursionError:
            return ValidationResult.failure(["JSON syntax error: document is nested too deeply"])
        except ValueError as e:
            return ValidationResult.failure([f"JSON syntax error: {e}"])
        return ValidationResult.success()


class TextLengthValidator:
    """
    Rejects prepared text longer than the model can take.

    The usable limit is limit_chars minus overhead_chars, the room kept for
    the system prompt and markers. A limit of 0 disables the check.
    """

    def __init__(self, limit_chars: int, overhead_chars: int = 2000):
        self.overhead_chars = overhead_chars
        self.limit_chars = max(0, limit_chars - max(0, overhead_chars))

    def validate(self, content: str) -> ValidationResult:
        length = len(content)
        if self.limit_chars > 0 and length > self.limit_chars:
            excess = length - self.limit_chars
            return ValidationResult.failure([
                f"Prepared text length {length} exceeds limit {self.limit_chars} by {excess} chars "
                f"(includes {self.overhead_chars} overhead). Split input or reduce max output tokens."
            ])
        return ValidationResult.success()

    @classmethod
    def from_model_config(cls, model: Dict[str, Any], fallback_reserve_pct: int = 20,
                          overhead_chars: int = 2000) -> "TextLengthValidator":
        """
        Build a validator from a model's limits.

        With limits.max_tokens set, the output reservation (max_output_tokens,
        or fallback_reserve_pct of max_tokens) is subtracted and the rest is
        converted to characters; estimated_max_chars caps the result when
        present. Without token limits only estimated_max_chars is used.
        """
        limits = model.get("limits") if isinstance(model, dict) else None
        if not isinstance(limits, dict):
            limits = {}

        estimated_max_chars = _to_int(limits.get("estimated_max_chars"))
        max_tokens = _to_int(limits.get("max_tokens"))
        max_output_tokens = _to_int(limits.get("max_output_tokens"))

        if max_tokens > 0:
            if max_output_tokens > 0:
                reserved = max_output_tokens
            else:
                reserved = max(1, math.floor(max_tokens * fallback_reserve_pct / 100))
            input_budget = max(0, max_tokens - reserved)
            chars_by_tokens = input_budget * CHARS_PER_TOKEN
            limit = min(estimated_max_chars, chars_by_tokens) if estimated_max_chars > 0 else chars_by_tokens
        else:
            limit = estimated_max_chars

        return cls(limit, overhead_chars)


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def get_syntax_validator(fmt: str) -> Optional[Any]:
    """Validator for a content format, or None for plain text."""
    if fmt == "html":
        return HtmlValidator()
    if fmt == "json":
        return JsonValidator()
    return None
