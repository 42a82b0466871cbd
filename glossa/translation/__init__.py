"""
Translation module - Core translation pipeline

This module provides:
- TranslationManager: runs one document through the pipeline
- TranslationResult: result record
- Validators for HTML, JSON and prepared text length
- JSON schema capture, comparison and repair
"""

from glossa.translation.validator import (
    HtmlValidator,
    JsonValidator,
    TextLengthValidator,
    ValidationResult,
    get_syntax_validator,
)
from glossa.translation.schema import (
    REPAIR_MISSING_NULLS,
    apply_repairs,
    capture,
    validate,
)
from glossa.translation.result import TranslationResult
from glossa.translation.progress import PipelineContext, Stage
from glossa.translation.manager import TranslationManager, translate
