"""
AI Provider Drivers

This module turns a prepared (masked) text into a vendor request and a
vendor response back into translated text:
- OpenAI, Anthropic, xAI (OpenAI-style chat completions)
- Google Gemini (generateContent)
- Yandex Foundation Models (completion)
- DeepL (form fields, no prompt)

Chat drivers wrap the user text between MARKER_START and MARKER_END and
require the model to echo both markers around its answer. A reply without
markers is an error, never returned as-is.

Drivers are stateless apart from the prompt catalog they render from and
are looked up by vendor tag through DRIVERS.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlencode

from glossa.logger import get_logger
from glossa.ai.exceptions import (
    MarkersNotFound,
    MissingRequiredConfig,
    ResponseMalformed,
    Truncated,
    VendorApiError,
)
from glossa.ai.prompts import PromptCatalog

logger = get_logger(__name__)

MARKER_START = "‹‹TRANSLATION››"
MARKER_END = "‹‹END››"

MARKED_SPAN_PATTERN = re.compile(re.escape(MARKER_START) + r"(.*?)" + re.escape(MARKER_END), re.DOTALL)

DEFAULT_PROMPT_KEY = "translator"
DEFAULT_SOURCE_LANG = "auto"
DEFAULT_TARGET_LANG = "EN"

# How much of a raw body goes into error messages
BODY_PREVIEW_CHARS = 500


@dataclass
class DriverRequest:
    """Everything needed to send one request, before authentication."""
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""


@dataclass
class DriverResponse:
    """Translated text plus the vendor's raw usage payload, if any."""
    text: str
    usage: Optional[Any] = None


def parse_header_lines(headers: Union[List[str], Dict[str, str], None]) -> Dict[str, str]:
    """
    Normalize configured headers to a dict.

    models.yaml may list headers as "Name: value" strings or as a mapping.
    """
    if not headers:
        return {}
    if isinstance(headers, dict):
        return {str(k): str(v) for k, v in headers.items()}

    parsed = {}
    for line in headers:
        name, sep, value = str(line).partition(":")
        if sep:
            parsed[name.strip()] = value.strip()
    return parsed


def preview(raw: str, limit: int = BODY_PREVIEW_CHARS) -> str:
    if len(raw) <= limit:
        return raw
    return raw[:limit] + "..."


def extract_marked_text(content: str, vendor: str) -> str:
    """Return the trimmed text between the markers or raise MarkersNotFound."""
    match = MARKED_SPAN_PATTERN.search(content)
    if not match:
        raise MarkersNotFound(
            f"Markers not found in {vendor} response",
            details={"content_preview": preview(content)},
        )
    return match.group(1).strip()


def _dig(data: Any, *path: Union[str, int]) -> Any:
    """Walk nested dicts/lists; None as soon as a step is missing."""
    for step in path:
        if isinstance(step, int):
            if not isinstance(data, list) or step >= len(data):
                return None
        elif not isinstance(data, dict):
            return None
        data = data[step] if isinstance(step, int) else data.get(step)
    return data


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class ModelDriver:
    """
    Base class for vendor drivers.

    Subclasses implement build_request() and parse_response(). Both receive
    the flattened model config from the registry.
    """

    vendor = "base"
    display_name = "Base"

    def __init__(self, prompts: Optional[PromptCatalog] = None):
        self.prompts = prompts

    def build_request(self, config: Dict[str, Any], text: str, options: Dict[str, Any]) -> DriverRequest:
        raise NotImplementedError

    def parse_response(self, config: Dict[str, Any], raw_body: str) -> DriverResponse:
        raise NotImplementedError

    # Option helpers

    @staticmethod
    def _defaults(config: Dict[str, Any]) -> Dict[str, Any]:
        defaults = config.get("defaults") if isinstance(config, dict) else None
        return defaults if isinstance(defaults, dict) else {}

    def _option(self, config: Dict[str, Any], options: Dict[str, Any], name: str, default: Any = None) -> Any:
        """Per-call option, then model default, then the given default."""
        value = options.get(name)
        if value is None:
            value = self._defaults(config).get(name)
        return default if value is None else value

    def _model_name(self, config: Dict[str, Any]) -> str:
        model = self._defaults(config).get("model")
        if not model:
            raise MissingRequiredConfig(f"Missing {self.display_name} model name")
        return str(model)

    def _headers(self, config: Dict[str, Any]) -> Dict[str, str]:
        requirements = config.get("requirements") or {}
        return parse_header_lines(requirements.get("headers"))

    def _decode(self, raw_body: str) -> Dict[str, Any]:
        try:
            data = json.loads(raw_body)
        except (TypeError, ValueError):
            data = None
        if not isinstance(data, dict):
            raise ResponseMalformed(
                f"Invalid JSON response from {self.display_name}: {preview(str(raw_body))}",
                details={"vendor": self.vendor},
            )
        return data


class MarkerDriver(ModelDriver):
    """
    Shared request/response handling for prompt-based vendors.

    Parsing runs in a fixed order: vendor error envelope, content
    extraction, finish/truncation check, marker extraction.
    """

    def system_prompt(self, config: Dict[str, Any], options: Dict[str, Any]) -> str:
        if self.prompts is None:
            raise MissingRequiredConfig(f"{self.display_name} driver needs a prompt catalog")

        context = str(self._option(config, options, "context", "") or "").strip()
        variables = {
            "source": self._option(config, options, "source_lang", DEFAULT_SOURCE_LANG),
            "target": self._option(config, options, "target_lang", DEFAULT_TARGET_LANG),
            "start": MARKER_START,
            "end": MARKER_END,
            "context": f"Context: {context}" if context else "",
        }
        prompt_key = options.get("prompt_key") or DEFAULT_PROMPT_KEY
        fmt = self._option(config, options, "format", "text")
        return self.prompts.render(prompt_key, fmt, variables)

    @staticmethod
    def wrap(text: str) -> str:
        return f"{MARKER_START}\n{text}\n{MARKER_END}"

    def parse_response(self, config: Dict[str, Any], raw_body: str) -> DriverResponse:
        data = self._decode(raw_body)
        self.check_error(data)

        content = self.extract_content(data)
        if not isinstance(content, str):
            raise ResponseMalformed(
                f"{self.display_name} response has no text content: {preview(raw_body)}",
                details={"vendor": self.vendor},
            )

        self.check_finish(data)

        text = extract_marked_text(content, self.display_name)
        return DriverResponse(text=text, usage=self.extract_usage(data))

    def check_error(self, data: Dict[str, Any]) -> None:
        error = data.get("error")
        if isinstance(error, dict):
            message = error.get("message") or json.dumps(error, ensure_ascii=False)
            raise VendorApiError(f"{self.display_name} API error: {message}", details={"vendor": self.vendor})
        if isinstance(error, str):
            raise VendorApiError(f"{self.display_name} API error: {error}", details={"vendor": self.vendor})

    def check_finish(self, data: Dict[str, Any]) -> None:
        if self.is_truncated(data):
            raise Truncated(
                f"{self.display_name}: translation was truncated by the output token limit; "
                f"split the input or raise max_tokens",
                details={"vendor": self.vendor},
            )

    def extract_content(self, data: Dict[str, Any]) -> Any:
        raise NotImplementedError

    def is_truncated(self, data: Dict[str, Any]) -> bool:
        return False

    def extract_usage(self, data: Dict[str, Any]) -> Optional[Any]:
        return None


class OpenAIDriver(MarkerDriver):
    """OpenAI Chat Completions."""

    vendor = "openai"
    display_name = "OpenAI"

    def build_payload(self, config: Dict[str, Any], text: str, options: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "model": self._model_name(config),
            "messages": [
                {"role": "system", "content": self.system_prompt(config, options)},
                {"role": "user", "content": self.wrap(text)},
            ],
            "temperature": _as_float(self._option(config, options, "temperature", 0.0), 0.0),
        }

    def build_request(self, config: Dict[str, Any], text: str, options: Dict[str, Any]) -> DriverRequest:
        payload = self.build_payload(config, text, options)
        logger.debug(f"Built {self.display_name} request for model {payload.get('model')}")
        return DriverRequest(
            url=config.get("endpoint", ""),
            headers=self._headers(config),
            body=json.dumps(payload, ensure_ascii=False),
        )

    def extract_content(self, data: Dict[str, Any]) -> Any:
        return _dig(data, "choices", 0, "message", "content")

    def is_truncated(self, data: Dict[str, Any]) -> bool:
        return _dig(data, "choices", 0, "finish_reason") == "length"

    def extract_usage(self, data: Dict[str, Any]) -> Optional[Any]:
        return data.get("usage")


class AnthropicDriver(OpenAIDriver):
    """Anthropic through its OpenAI-compatible chat completions endpoint."""

    vendor = "anthropic"
    display_name = "Anthropic"

    DEFAULT_MAX_TOKENS = 1000

    def build_payload(self, config: Dict[str, Any], text: str, options: Dict[str, Any]) -> Dict[str, Any]:
        payload = super().build_payload(config, text, options)
        max_tokens = _as_int(self._option(config, options, "max_tokens")) or self.DEFAULT_MAX_TOKENS
        payload["max_tokens"] = max_tokens
        return payload

    def check_error(self, data: Dict[str, Any]) -> None:
        error = data.get("error")
        if not isinstance(error, dict):
            return
        message = error.get("message") if isinstance(error.get("message"), str) else json.dumps(error, ensure_ascii=False)
        if "max_tokens" in message:
            raise VendorApiError(
                f"Anthropic API error: {message} (max_tokens is above what the model accepts; "
                f"lower defaults.max_tokens for this model)",
                details={"vendor": self.vendor, "error_type": error.get("type")},
            )
        raise VendorApiError(
            f"Anthropic API error: {message}",
            details={"vendor": self.vendor, "error_type": error.get("type")},
        )


class XaiDriver(OpenAIDriver):
    """xAI Grok chat completions."""

    vendor = "xai"
    display_name = "xAI"

    def build_payload(self, config: Dict[str, Any], text: str, options: Dict[str, Any]) -> Dict[str, Any]:
        payload = super().build_payload(config, text, options)
        max_tokens = _as_int(self._option(config, options, "max_tokens"))
        if max_tokens:
            payload["max_tokens"] = max_tokens
        payload["stream"] = False
        return payload

    def check_error(self, data: Dict[str, Any]) -> None:
        error = data.get("error")
        if not isinstance(error, (dict, str)):
            return
        code = data.get("code") if isinstance(data.get("code"), str) else None
        if isinstance(error, dict):
            code = code or (str(error["code"]) if error.get("code") is not None else None)
            message = error.get("message") or json.dumps(error, ensure_ascii=False)
        else:
            message = error
        raise VendorApiError(f"Grok API error [{code or 'unknown_error'}]: {message}", details={"vendor": self.vendor})


class GoogleDriver(MarkerDriver):
    """Google Gemini generateContent."""

    vendor = "google"
    display_name = "Google"

    def build_request(self, config: Dict[str, Any], text: str, options: Dict[str, Any]) -> DriverRequest:
        generation_config = {
            "temperature": _as_float(self._option(config, options, "temperature", 0.0), 0.0),
            "candidateCount": _as_int(self._option(config, options, "candidate_count", 1)) or 1,
        }

        max_output_tokens = _as_int(self._option(config, options, "max_output_tokens"))
        if max_output_tokens is not None:
            generation_config["maxOutputTokens"] = max_output_tokens

        # Thinking controls only exist on Gemini 2.5+, so they are per-call only
        thinking = {}
        thinking_budget = _as_int(options.get("thinking_budget"))
        if thinking_budget is not None:
            thinking["thinkingBudget"] = thinking_budget
        if options.get("include_thoughts") is not None:
            thinking["includeThoughts"] = bool(options["include_thoughts"])
        if thinking:
            generation_config["thinkingConfig"] = thinking

        payload = {
            "system_instruction": {"parts": [{"text": self.system_prompt(config, options)}]},
            "contents": [{"role": "user", "parts": [{"text": self.wrap(text)}]}],
            "generationConfig": generation_config,
        }
        return DriverRequest(
            url=config.get("endpoint", ""),
            headers=self._headers(config),
            body=json.dumps(payload, ensure_ascii=False),
        )

    def check_error(self, data: Dict[str, Any]) -> None:
        error = data.get("error")
        if isinstance(error, dict):
            code = error.get("code")
            status = error.get("status")
            label = " ".join(str(p) for p in (code, status) if p)
            label = f" ({label})" if label else ""
            raise VendorApiError(
                f"Google API error{label}: {error.get('message', 'unknown error')}",
                details={"vendor": self.vendor, "status": status},
            )

    def extract_content(self, data: Dict[str, Any]) -> Any:
        parts = _dig(data, "candidates", 0, "content", "parts")
        if not isinstance(parts, list):
            return None
        texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str) and not p.get("thought")]
        return "".join(texts) if texts else None

    def check_finish(self, data: Dict[str, Any]) -> None:
        reason = _dig(data, "candidates", 0, "finishReason")
        if reason is None or reason == "STOP":
            return
        if reason == "MAX_TOKENS":
            raise Truncated(
                "Google: translation was truncated (finishReason=MAX_TOKENS); "
                "split the input or raise max_output_tokens",
                details={"vendor": self.vendor},
            )
        raise ResponseMalformed(
            f"Google API returned unexpected finishReason '{reason}'",
            details={"vendor": self.vendor, "finish_reason": reason},
        )

    def extract_usage(self, data: Dict[str, Any]) -> Optional[Any]:
        return data.get("usageMetadata")


class YandexDriver(MarkerDriver):
    """Yandex Foundation Models completion API."""

    vendor = "yandex"
    display_name = "Yandex"

    TRUNCATED_STATUS = "ALTERNATIVE_STATUS_TRUNCATED_FINAL"

    def build_request(self, config: Dict[str, Any], text: str, options: Dict[str, Any]) -> DriverRequest:
        folder_id = options.get("folder_id")
        if not folder_id:
            raise MissingRequiredConfig("Missing Yandex folder_id in options")
        model = self._model_name(config)

        completion_options = {
            "stream": False,
            "temperature": _as_float(self._option(config, options, "temperature", 0.0), 0.0),
        }
        max_tokens = _as_int(self._option(config, options, "max_tokens"))
        if max_tokens:
            completion_options["maxTokens"] = max_tokens

        payload = {
            "modelUri": f"gpt://{folder_id}/{model}",
            "completionOptions": completion_options,
            "messages": [
                {"role": "system", "text": self.system_prompt(config, options)},
                {"role": "user", "text": self.wrap(text)},
            ],
        }
        return DriverRequest(
            url=config.get("endpoint", ""),
            headers=self._headers(config),
            body=json.dumps(payload, ensure_ascii=False),
        )

    def check_error(self, data: Dict[str, Any]) -> None:
        error = data.get("error")
        if error is None:
            return
        if not isinstance(error, dict):
            raise VendorApiError(f"Yandex API error: {error}", details={"vendor": self.vendor})

        message = error.get("message") or json.dumps(error, ensure_ascii=False)
        code = _as_int(error.get("httpCode"))
        http_status = str(error.get("httpStatus") or "")
        details = {"vendor": self.vendor, "http_code": code}

        if code == 400 and "folder id" in message.lower():
            raise VendorApiError(f"Yandex API folder-id mismatch: {message}", status=code, details=details)
        if code == 401 or "unauthorized" in http_status.lower():
            raise VendorApiError(f"Yandex API authentication error: {message}", status=code, details=details)
        if code == 500:
            raise VendorApiError(f"Yandex API internal server error: {message}", status=code, details=details)

        code_part = f" (HTTP {code})" if code else ""
        raise VendorApiError(f"Yandex API error{code_part}: {message}", status=code, details=details)

    def extract_content(self, data: Dict[str, Any]) -> Any:
        content = _dig(data, "result", "alternatives", 0, "message", "text")
        if content is None:
            content = _dig(data, "completions", 0, "text")
        return content

    def is_truncated(self, data: Dict[str, Any]) -> bool:
        return _dig(data, "result", "alternatives", 0, "status") == self.TRUNCATED_STATUS

    def extract_usage(self, data: Dict[str, Any]) -> Optional[Any]:
        return _dig(data, "result", "usage")


class DeepLDriver(ModelDriver):
    """
    DeepL /v2/translate.

    DeepL takes plain form fields instead of a prompt. For JSON input the
    tag handling feature would reflow punctuation, so JSON punctuation is
    swapped for private tags before sending and swapped back afterwards.
    """

    vendor = "deepl"
    display_name = "DeepL"

    JSON_PUNCTUATION = {
        "{": "<jlc/>",
        "}": "<jrc/>",
        "[": "<jlb/>",
        "]": "<jrb/>",
        ":": "<jcol/>",
        ",": "<jcomma/>",
        '"': "<jqt/>",
    }
    _PROTECT_TABLE = str.maketrans(JSON_PUNCTUATION)
    _RESTORE_PATTERN = re.compile("|".join(re.escape(tag) for tag in JSON_PUNCTUATION.values()))
    _RESTORE_MAP = {tag: char for char, tag in JSON_PUNCTUATION.items()}

    @classmethod
    def protect_json(cls, text: str) -> str:
        return text.translate(cls._PROTECT_TABLE)

    @classmethod
    def restore_json(cls, text: str) -> str:
        return cls._RESTORE_PATTERN.sub(lambda m: cls._RESTORE_MAP[m.group(0)], text)

    def build_request(self, config: Dict[str, Any], text: str, options: Dict[str, Any]) -> DriverRequest:
        fmt = self._option(config, options, "format", "text")

        payload = {
            "text": self.protect_json(text) if fmt == "json" else text,
            "target_lang": self._option(config, options, "target_lang", DEFAULT_TARGET_LANG),
            "formality": self._option(config, options, "formality", "prefer_more"),
        }

        source_lang = self._option(config, options, "source_lang", DEFAULT_SOURCE_LANG)
        if source_lang and str(source_lang).lower() != "auto":
            payload["source_lang"] = source_lang

        context = str(self._option(config, options, "context", "") or "").strip()
        if context:
            payload["context"] = context

        if fmt in ("html", "json"):
            payload["tag_handling"] = "html"
            payload["preserve_formatting"] = "1"
            payload["outline_detection"] = "1"

        return DriverRequest(
            url=config.get("endpoint", ""),
            headers=self._headers(config),
            body=urlencode(payload),
        )

    def parse_response(self, config: Dict[str, Any], raw_body: str) -> DriverResponse:
        data = self._decode(raw_body)

        if isinstance(data.get("message"), str) and "translations" not in data:
            raise VendorApiError(f"DeepL API error: {data['message']}", details={"vendor": self.vendor})

        text = _dig(data, "translations", 0, "text")
        if not isinstance(text, str):
            raise ResponseMalformed(
                f"DeepL translation failed: {preview(raw_body)}",
                details={"vendor": self.vendor},
            )

        # The private tags only exist if build_request put them there
        return DriverResponse(text=self.restore_json(text), usage=None)


DRIVERS = {
    OpenAIDriver.vendor: OpenAIDriver,
    AnthropicDriver.vendor: AnthropicDriver,
    GoogleDriver.vendor: GoogleDriver,
    XaiDriver.vendor: XaiDriver,
    YandexDriver.vendor: YandexDriver,
    DeepLDriver.vendor: DeepLDriver,
}
