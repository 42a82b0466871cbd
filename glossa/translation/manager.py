"""
Translation Manager Module

Main TranslationManager class that runs one document through the pipeline:
- Pre-validate the container format (HTML / JSON)
- Mask protected spans with placeholder filters
- Build, authenticate and send the vendor request
- Parse the reply, unmask, post-validate (syntax + JSON schema)
- Normalize usage into the result record

Every stage either hands its output to the next one or raises a
TranslationError carrying the diagnostics gathered so far.
"""

import json
from typing import Any, Callable, Dict, List, Optional

from glossa.ai.exceptions import ConfigurationError, TranslationError, ValidationError
from glossa.ai.http import HttpClient
from glossa.ai.prompts import PromptCatalog
from glossa.ai.registry import ModelRegistry
from glossa.ai.service import AIService
from glossa.ai.usage import extract_usage
from glossa.config import SUPPORTED_FORMATS, get_resource_path, load_config
from glossa.logger import get_logger
from glossa.protection import FilterPipeline, contains_placeholder
from glossa.translation import schema
from glossa.translation.progress import PipelineContext, Stage
from glossa.translation.result import TranslationResult
from glossa.translation.validator import TextLengthValidator, get_syntax_validator, load_strict

logger = get_logger(__name__)

FeedbackCallback = Callable[[str, str], None]

JSON_SCHEMA_CAPTURED = "[JSON schema captured]"
JSON_SCHEMA_VALIDATED = "[JSON schema validated]"


class TranslationManager:
    """
    Coordinates a single-document translation.

    The registry, prompt catalog and HTTP client are built once and shared;
    every translate() call gets its own counter, filters and context.

    Example:
        >>> manager = TranslationManager.from_config()
        >>> res = manager.translate("Hello https://example.com", "openai:gpt-4o",
        ...                         api_key="sk-...", filters=["url"], dry_run=True)
        >>> res.result
        'Hello https://example.com'
    """

    def __init__(
        self,
        registry: ModelRegistry,
        prompts: PromptCatalog,
        http_client: Optional[HttpClient] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.config = config if config is not None else load_config()
        self.translation_config = self.config.get("translation", {})
        self.registry = registry
        self.prompts = prompts
        if http_client is None:
            http_client = HttpClient(timeout=self.config.get("http", {}).get("timeout", 120))
        self.service = AIService(registry, prompts, http_client)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None,
                    http_client: Optional[HttpClient] = None) -> "TranslationManager":
        """Build a manager from configuration, loading models and prompts from YAML."""
        config = config if config is not None else load_config()
        registry = ModelRegistry.from_file(get_resource_path(config, "models"))
        prompts = PromptCatalog.from_file(get_resource_path(config, "prompts"))
        return cls(registry, prompts, http_client=http_client, config=config)

    def translate(
        self,
        text: str,
        model_key: str,
        fmt: str = "text",
        api_key: Optional[str] = None,
        filters: Optional[List[str]] = None,
        dry_run: bool = False,
        verbose: bool = False,
        context: Optional[str] = None,
        prompt_key: Optional[str] = None,
        source_lang: Optional[str] = None,
        target_lang: Optional[str] = None,
        variables: Optional[Dict[str, Any]] = None,
        proxy: Optional[str] = None,
        validate: Optional[bool] = None,
        repairs: Optional[List[str]] = None,
        options: Optional[Dict[str, Any]] = None,
        on_feedback: Optional[FeedbackCallback] = None,
    ) -> TranslationResult:
        """
        Translate one document.

        Args:
            text: Document to translate
            model_key: "vendor:model" key from the registry
            fmt: "text", "html" or "json"
            api_key: Vendor credential, required when the model declares auth
            filters: Placeholder filter identifiers, e.g. ["url", "html_code"]
            dry_run: Skip the network call and echo the masked text
            verbose: Log request/response debug strings
            context: Extra context for the system prompt
            prompt_key: Prompt template kind (default from config)
            source_lang: Overrides the model's default source language
            target_lang: Overrides the model's default target language
            variables: Per-call model variables, e.g. {"folder_id": "..."}
            proxy: Proxy URL for the request
            validate: Run syntax/schema checks (default from config)
            repairs: Schema repairs to apply to JSON output
            options: Extra driver options (temperature, max_tokens, ...)
            on_feedback: Called as on_feedback(level, message) at notable steps

        Returns:
            TranslationResult

        Raises:
            ConfigurationError, AuthError, ValidationError, TransportError,
            ResponseFormatError (all TranslationError subclasses)
        """
        filters = self.translation_config.get("filters", []) if filters is None else filters
        validate = self.translation_config.get("validate", True) if validate is None else validate
        repairs = self.translation_config.get("repairs", []) if repairs is None else repairs
        prompt_key = prompt_key or self.translation_config.get("prompt_key", "translator")
        proxy = proxy or self.config.get("proxy")

        ctx = PipelineContext(model_key=model_key, fmt=fmt, original=text, secrets=[api_key] if api_key else [])
        pipeline = FilterPipeline(filters)

        def feedback(level: str, message: str) -> None:
            if on_feedback is not None:
                on_feedback(level, message)

        logger.info(f"Translating {len(text)} chars with {model_key} (format={fmt}, dry_run={dry_run})")

        try:
            ctx.advance(Stage.START)
            model_config = self._check_model(model_key, fmt, repairs)
            driver = self.service.get_driver(model_key)

            ctx.advance(Stage.PRE_VALIDATE)
            before_data = self._pre_validate(text, fmt, pipeline, validate)

            ctx.advance(Stage.MASK)
            ctx.prepared = pipeline.apply(text)
            self._check_length(model_config, ctx.prepared)

            ctx.advance(Stage.BUILD_REQUEST)
            driver_options = dict(options or {})
            driver_options.update(variables or {})
            driver_options["format"] = fmt
            driver_options["prompt_key"] = prompt_key
            for name, value in (("context", context), ("source_lang", source_lang), ("target_lang", target_lang)):
                if value is not None:
                    driver_options[name] = value
            request = self.service.build_request(driver, model_config, ctx.prepared, driver_options)

            ctx.advance(Stage.AUTHENTICATE)
            request = self.service.authenticate(model_key, model_config, request, api_key)

            ctx.advance(Stage.TRANSMIT)
            response = self.service.transmit(request, api_key=api_key, proxy=proxy, dry_run=dry_run, verbose=verbose)
            ctx.http_status = response.status
            ctx.debug_request = response.debug_request
            ctx.debug_response = response.debug_response
            ctx.raw_response_body = response.body
            if dry_run:
                feedback("info", "Dry-run: request was not sent")

            ctx.advance(Stage.PARSE_RESPONSE)
            if dry_run:
                ctx.translated, raw_usage = ctx.prepared, None
            else:
                parsed = self.service.parse(model_key, driver, model_config, response, api_key=api_key)
                ctx.translated, raw_usage = parsed.text, parsed.usage

            ctx.advance(Stage.UNMASK)
            ctx.result = pipeline.restore(ctx.translated)

            ctx.advance(Stage.POST_VALIDATE)
            if validate:
                ctx.result = self._post_validate(ctx.result, fmt, before_data, repairs, feedback)
                if fmt == "json" and verbose:
                    ctx.debug_request = f"{JSON_SCHEMA_CAPTURED}\n{ctx.debug_request}"
                    ctx.debug_response = f"{ctx.debug_response}\n{JSON_SCHEMA_VALIDATED}"

            ctx.advance(Stage.NORMALIZE_USAGE)
            consumed = extract_usage(model_config, raw_usage)

            ctx.advance(Stage.DONE)
        except TranslationError as e:
            ctx.fail(e)
            logger.error(f"Translation failed at stage {ctx.failed_stage.value}: {e}")
            feedback("error", str(e))
            raise

        logger.info(f"Translation finished: {len(ctx.result)} chars")
        return TranslationResult(
            original=text,
            prepared=ctx.prepared,
            result=ctx.result,
            http_status=ctx.http_status,
            debug_request=ctx.debug_request,
            debug_response=ctx.debug_response,
            raw_response_body=ctx.raw_response_body,
            consumed=consumed,
            lengths={
                "original": len(text),
                "prepared": len(ctx.prepared),
                "translated": len(ctx.result),
            },
            filter_stats=pipeline.stats(),
        )

    def _check_model(self, model_key: str, fmt: str, repairs: List[str]) -> Dict[str, Any]:
        model_config = self.registry.require(model_key)

        if not self.registry.get_endpoint(model_key):
            raise ConfigurationError(
                f"Model {model_key} missing required configuration (endpoint)",
                details={"model": model_key},
            )

        if fmt not in SUPPORTED_FORMATS:
            raise ConfigurationError(
                f"Invalid format: '{fmt}'. Allowed: {', '.join(SUPPORTED_FORMATS)}",
                details={"format": fmt},
            )
        declared = self.registry.get_formats(model_key)
        if declared and fmt not in declared:
            raise ConfigurationError(
                f"Model {model_key} does not support format '{fmt}' (supports: {', '.join(declared)})",
                details={"model": model_key, "format": fmt},
            )

        unknown = schema.unknown_repairs(repairs)
        if unknown:
            raise ConfigurationError(f"Unknown repair feature(s): {', '.join(unknown)}", details={"repairs": unknown})

        return model_config

    def _pre_validate(self, text: str, fmt: str, pipeline: FilterPipeline, validate: bool) -> Any:
        """Check the input; returns the parsed JSON document for json format."""
        if pipeline and contains_placeholder(text):
            raise ValidationError(
                "Input already contains placeholder tokens (@@N@@); they could not be told apart from masked spans",
                errors=["Reserved placeholder syntax found in input"],
            )

        if not validate:
            return None

        validator = get_syntax_validator(fmt)
        if validator is not None:
            check = validator.validate(text)
            if not check.valid:
                raise ValidationError(f"{fmt.upper()} validation failed before translation", errors=check.errors)

        if fmt == "json":
            document = load_strict(text)
            logger.debug("JSON schema captured")
            return document
        return None

    def _check_length(self, model_config: Dict[str, Any], prepared: str) -> None:
        if not self.translation_config.get("length_check", True):
            return
        validator = TextLengthValidator.from_model_config(
            model_config,
            fallback_reserve_pct=self.translation_config.get("length_reserve_pct", 20),
            overhead_chars=self.translation_config.get("length_overhead_chars", 2000),
        )
        check = validator.validate(prepared)
        if not check.valid:
            raise ValidationError("Prepared text is too long for this model", errors=check.errors)

    def _post_validate(self, result: str, fmt: str, before_data: Any, repairs: List[str],
                       feedback: FeedbackCallback) -> str:
        """Check the output; may return a re-serialized JSON document after repairs."""
        validator = get_syntax_validator(fmt)
        if validator is not None:
            check = validator.validate(result)
            if not check.valid:
                raise ValidationError(f"{fmt.upper()} validation failed after translation", errors=check.errors)

        if fmt != "json":
            return result

        try:
            after_data = load_strict(result)
            if repairs:
                repaired = schema.apply_repairs(before_data, after_data, repairs)
                if repaired != after_data:
                    feedback("warning", f"Applied JSON repairs: {', '.join(repairs)}")
                    logger.warning(f"Applied JSON repairs: {', '.join(repairs)}")
                    after_data = repaired
                    result = json.dumps(repaired, ensure_ascii=False)

            check = schema.validate(schema.capture(before_data), schema.capture(after_data))
        except RecursionError:
            raise ValidationError("JSON schema validation failed after translation",
                                  errors=["JSON document is nested too deeply to compare"])
        if not check.valid:
            raise ValidationError("JSON schema validation failed after translation", errors=check.errors)
        logger.debug("JSON schema validated")
        return result


def translate(text: str, model_key: str, fmt: str = "text", api_key: Optional[str] = None,
              **kwargs) -> TranslationResult:
    """Translate with a manager built from the default configuration."""
    return TranslationManager.from_config().translate(text, model_key, fmt=fmt, api_key=api_key, **kwargs)
