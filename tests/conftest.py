"""Pytest configuration for glossa tests."""

import copy
import json
import sys
from pathlib import Path

import httpx
import pytest

# Ensure glossa is importable without installation
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from glossa.ai.http import HttpClient  # noqa: E402
from glossa.ai.prompts import PromptCatalog  # noqa: E402
from glossa.ai.registry import ModelRegistry  # noqa: E402
from glossa.config import DEFAULT_CONFIG, MODELS_FILE, PROMPTS_FILE  # noqa: E402
from glossa.translation.manager import TranslationManager  # noqa: E402


@pytest.fixture
def registry() -> ModelRegistry:
    return ModelRegistry.from_file(MODELS_FILE)


@pytest.fixture
def prompts() -> PromptCatalog:
    return PromptCatalog.from_file(PROMPTS_FILE)


@pytest.fixture
def app_config() -> dict:
    return copy.deepcopy(DEFAULT_CONFIG)


@pytest.fixture
def make_manager(registry, prompts, app_config):
    """Build a manager whose HTTP calls go to the given handler."""

    def _make(handler=None, model_registry=None):
        transport = httpx.MockTransport(handler) if handler else None
        return TranslationManager(
            model_registry or registry,
            prompts,
            http_client=HttpClient(transport=transport),
            config=app_config,
        )

    return _make


@pytest.fixture
def chat_reply():
    """OpenAI-style chat completion body wrapping text in the translation markers."""

    def _reply(text, finish_reason="stop", usage=None, markers=True):
        content = f"‹‹TRANSLATION››\n{text}\n‹‹END››" if markers else text
        body = {
            "choices": [{
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": finish_reason,
            }],
        }
        if usage is not None:
            body["usage"] = usage
        return json.dumps(body, ensure_ascii=False)

    return _reply
