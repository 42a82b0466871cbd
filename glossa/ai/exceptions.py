"""
Translation Exceptions

This module contains the exception hierarchy shared by drivers, validators
and the translation pipeline:
- TranslationError base with code and details
- Pre-I/O failures (configuration, auth)
- Validation failures
- Transport and vendor failures
- Response format failures (malformed, truncated, markers missing)

Separated to avoid circular imports between service.py and providers.py.
"""

from typing import List, Optional


class TranslationError(Exception):
    """Translation service error with optional code and details."""

    default_code = "translation_error"

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.code = code or self.default_code
        self.details = details or {}


class ConfigurationError(TranslationError):
    """Unknown model/vendor or missing configuration, raised before any I/O."""

    default_code = "configuration_error"


class MissingRequiredConfig(ConfigurationError):
    """A driver could not build a request: no model name or a missing per-call variable."""

    default_code = "missing_required_config"


class TemplateNotFound(ConfigurationError):
    default_code = "template_not_found"


class FormatNotFound(ConfigurationError):
    default_code = "format_not_found"


class AuthError(TranslationError):
    """No credential available for a model that declares one."""

    default_code = "auth_error"


class ValidationError(TranslationError):
    """Syntax or schema check failed before or after translation."""

    default_code = "validation_error"

    def __init__(self, message: str, errors: Optional[List[str]] = None, code: str = None, details: dict = None):
        super().__init__(message, code=code, details=details)
        self.errors = list(errors or [])


class TransportError(TranslationError):
    """Network failure or unhandled HTTP status."""

    default_code = "transport_error"

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None,
                 code: str = None, details: dict = None):
        super().__init__(message, code=code, details=details)
        self.status = status
        self.body = body


class VendorApiError(TransportError):
    """The vendor answered with its structured error envelope."""

    default_code = "vendor_api_error"


class ResponseFormatError(TranslationError):
    """The vendor answered, but not with something we can use."""

    default_code = "response_format_error"


class ResponseMalformed(ResponseFormatError):
    default_code = "response_malformed"


class Truncated(ResponseFormatError):
    default_code = "truncated"


class MarkersNotFound(ResponseFormatError):
    default_code = "markers_not_found"
