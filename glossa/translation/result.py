"""
Translation Result Data Class

Contains the TranslationResult dataclass returned by a pipeline run.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List


@dataclass
class TranslationResult:
    """Outcome of one translation, including debug strings and stats."""
    original: str
    prepared: str
    result: str
    http_status: int
    debug_request: str = ""
    debug_response: str = ""
    raw_response_body: str = ""
    consumed: Dict[str, Any] = field(default_factory=dict)     # normalized usage
    lengths: Dict[str, int] = field(default_factory=dict)      # original / prepared / translated
    filter_stats: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
