"""
AI Module

This module provides vendor drivers, the model registry, prompt templates
and the service that sends a translation request.
"""

from glossa.ai.exceptions import (
    AuthError,
    ConfigurationError,
    FormatNotFound,
    MarkersNotFound,
    MissingRequiredConfig,
    ResponseFormatError,
    ResponseMalformed,
    TemplateNotFound,
    TranslationError,
    TransportError,
    Truncated,
    ValidationError,
    VendorApiError,
)
from glossa.ai.http import HttpClient, HttpResponse
from glossa.ai.prompts import PromptCatalog
from glossa.ai.providers import DRIVERS, DriverRequest, DriverResponse, ModelDriver
from glossa.ai.registry import ModelRegistry
from glossa.ai.service import AIService, apply_auth, resolve_api_key, resolve_variables
from glossa.ai.usage import extract_usage

__all__ = [
    'AuthError', 'ConfigurationError', 'FormatNotFound', 'MarkersNotFound',
    'MissingRequiredConfig', 'ResponseFormatError', 'ResponseMalformed',
    'TemplateNotFound', 'TranslationError', 'TransportError', 'Truncated',
    'ValidationError', 'VendorApiError',
    'HttpClient', 'HttpResponse', 'PromptCatalog', 'DRIVERS', 'DriverRequest',
    'DriverResponse', 'ModelDriver', 'ModelRegistry', 'AIService', 'apply_auth',
    'resolve_api_key', 'resolve_variables', 'extract_usage',
]
