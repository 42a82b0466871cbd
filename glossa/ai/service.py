"""
AI Translation Service Module

This module talks to the vendor for one translation:
- Credential and variable resolution from the environment
- Authentication (header, form field or query parameter)
- Transmission through the HTTP client
- Response parsing with HTTP status handling

The pipeline steps around it (masking, validation) live in
translation/manager.py. No retries happen here.
"""

import os
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from glossa.logger import get_logger
from glossa.ai.exceptions import (
    AuthError,
    ConfigurationError,
    ResponseFormatError,
    TransportError,
    VendorApiError,
)
from glossa.ai.http import HttpClient, HttpResponse, redact
from glossa.ai.prompts import PromptCatalog
from glossa.ai.providers import DriverRequest, DriverResponse, ModelDriver, preview
from glossa.ai.registry import ModelRegistry

logger = get_logger(__name__)

AUTH_TYPES = ("header", "form", "query")


def resolve_api_key(registry: ModelRegistry, model_key: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Read the model's API key from the environment variable it declares."""
    environ = os.environ if environ is None else environ
    env_name = registry.get_auth_env(model_key)
    if not env_name:
        return None
    return environ.get(env_name) or None


def resolve_variables(registry: ModelRegistry, model_key: str, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Read the model's per-call variables from the environment.

    Args:
        registry: Model registry
        model_key: "vendor:model" key
        environ: Mapping to read from, defaults to os.environ

    Returns:
        {option_name: value} for every variable whose env var is set

    Example:
        >>> resolve_variables(registry, "yandex:gpt-lite", {"YANDEX_FOLDER_ID": "b1g"})
        {'folder_id': 'b1g'}
    """
    environ = os.environ if environ is None else environ
    values = {}
    for name, env_name in registry.get_variables(model_key).items():
        value = environ.get(env_name)
        if value:
            values[name] = value
    return values


def apply_auth(model_key: str, model_config: Dict[str, Any], request: DriverRequest, api_key: Optional[str]) -> DriverRequest:
    """
    Inject the API key where the model declares it.

    Returns a new request; the given one is not modified. Models without an
    auth requirement are returned unchanged.

    Raises:
        AuthError: the model needs a key and none was given
        ConfigurationError: unknown auth type
    """
    auth = (model_config.get("requirements") or {}).get("auth") or {}
    auth_type = auth.get("type")
    if not auth_type:
        return request

    if not api_key:
        env_name = auth.get("env")
        help_url = auth.get("help_url")
        message = f"API key not found for {model_key}"
        if env_name:
            message += f". Please set environment variable ${env_name}"
        if help_url:
            message += f". You can generate a key at: {help_url}"
        raise AuthError(message, details={"model": model_key, "env": env_name, "help_url": help_url})

    if auth_type not in AUTH_TYPES:
        raise ConfigurationError(
            f"Unsupported auth type '{auth_type}' for {model_key}",
            details={"model": model_key, "auth_type": auth_type},
        )

    key_name = auth.get("key_name") or "Authorization"
    prefix = auth.get("prefix")

    if auth_type == "header":
        headers = dict(request.headers)
        headers[key_name] = f"{prefix} {api_key}" if prefix else api_key
        return replace(request, headers=headers)

    encoded = urlencode({key_name: api_key})
    if auth_type == "form":
        body = f"{request.body}&{encoded}" if request.body else encoded
        return replace(request, body=body)

    separator = "&" if "?" in request.url else "?"
    return replace(request, url=f"{request.url}{separator}{encoded}")


class AIService:
    """Vendor-facing half of a translation: driver, auth, transport, parsing."""

    def __init__(self, registry: ModelRegistry, prompts: PromptCatalog, http_client: Optional[HttpClient] = None):
        self.registry = registry
        self.prompts = prompts
        self.http_client = http_client or HttpClient()

    def get_driver(self, model_key: str) -> ModelDriver:
        return self.registry.get_driver(model_key, self.prompts)

    def build_request(self, driver: ModelDriver, model_config: Dict[str, Any], text: str,
                      options: Dict[str, Any]) -> DriverRequest:
        return driver.build_request(model_config, text, options)

    def authenticate(self, model_key: str, model_config: Dict[str, Any], request: DriverRequest,
                     api_key: Optional[str]) -> DriverRequest:
        return apply_auth(model_key, model_config, request, api_key)

    def transmit(
        self,
        request: DriverRequest,
        api_key: Optional[str] = None,
        proxy: Optional[str] = None,
        dry_run: bool = False,
        verbose: bool = False,
    ) -> HttpResponse:
        return self.http_client.request(
            "POST",
            request.url,
            body=request.body,
            headers=request.headers,
            proxy=proxy,
            dry_run=dry_run,
            verbose=verbose,
            mask_patterns=[api_key] if api_key else [],
        )

    def parse(
        self,
        model_key: str,
        driver: ModelDriver,
        model_config: Dict[str, Any],
        response: HttpResponse,
        api_key: Optional[str] = None,
    ) -> DriverResponse:
        """
        Parse a vendor response.

        Statuses >= 400 are transport failures, unless the model sets
        http_error_handling: then the driver parses the body first so the
        vendor's own error message is raised. A body without a vendor error
        envelope still ends as TransportError.
        """
        secrets = [api_key] if api_key else []

        if response.status >= 400:
            body = redact(response.body, secrets)
            if model_config.get("http_error_handling"):
                try:
                    driver.parse_response(model_config, response.body)
                except VendorApiError as e:
                    if e.status is None:
                        e.status = response.status
                    e.body = body
                    raise
                except ResponseFormatError as e:
                    # No vendor envelope in the body; report the status instead
                    logger.debug(f"{model_key} error body not parseable: {redact(str(e), secrets)}")
            logger.error(f"{model_key} returned HTTP {response.status}")
            raise TransportError(
                f"HTTP {response.status} from {model_key}: {preview(body)}",
                status=response.status,
                body=body,
            )

        return driver.parse_response(model_config, response.body)
