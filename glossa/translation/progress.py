"""
Translation Progress

Tracks where a single translation run is in the pipeline and what it has
produced so far, so a failure at any stage can still report context.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from glossa.ai.http import redact


class Stage(str, Enum):
    START = "start"
    PRE_VALIDATE = "pre_validate"
    MASK = "mask"
    BUILD_REQUEST = "build_request"
    AUTHENTICATE = "authenticate"
    TRANSMIT = "transmit"
    PARSE_RESPONSE = "parse_response"
    UNMASK = "unmask"
    POST_VALIDATE = "post_validate"
    NORMALIZE_USAGE = "normalize_usage"
    DONE = "done"
    ERRORED = "errored"


@dataclass
class PipelineContext:
    """State accumulated by one pipeline run."""
    model_key: str
    fmt: str
    original: str
    stage: Stage = Stage.START
    failed_stage: Optional[Stage] = None
    prepared: Optional[str] = None
    translated: Optional[str] = None
    result: Optional[str] = None
    http_status: Optional[int] = None
    debug_request: str = ""
    debug_response: str = ""
    raw_response_body: str = ""
    # Values that must never show up in diagnostics
    secrets: List[str] = field(default_factory=list)

    def advance(self, stage: Stage) -> None:
        self.stage = stage

    def diagnostics(self) -> Dict[str, Any]:
        """Everything known so far, with secrets masked."""
        return {
            "stage": (self.failed_stage or self.stage).value,
            "model": self.model_key,
            "format": self.fmt,
            "original_length": len(self.original),
            "prepared_length": len(self.prepared) if self.prepared is not None else None,
            "http_status": self.http_status,
            "debug_request": redact(self.debug_request, self.secrets),
            "debug_response": redact(self.debug_response, self.secrets),
            "raw_response_body": redact(self.raw_response_body, self.secrets),
        }

    def fail(self, error: Exception) -> None:
        """Move to ERRORED and attach diagnostics to a TranslationError."""
        self.failed_stage = self.stage
        self.stage = Stage.ERRORED

        details = getattr(error, "details", None)
        if isinstance(details, dict):
            for key, value in self.diagnostics().items():
                details.setdefault(key, value)
            for key in ("debug_request", "debug_response"):
                if isinstance(details.get(key), str):
                    details[key] = redact(details[key], self.secrets)

        message = str(error)
        masked = redact(message, self.secrets)
        if masked != message:
            error.args = (masked,)
