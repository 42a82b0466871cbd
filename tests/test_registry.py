"""Tests for the YAML-backed model registry."""

from __future__ import annotations

import pytest
import yaml

from glossa.ai.exceptions import ConfigurationError
from glossa.ai.providers import (
    AnthropicDriver,
    DeepLDriver,
    GoogleDriver,
    OpenAIDriver,
    XaiDriver,
    YandexDriver,
)
from glossa.ai.registry import ModelRegistry, flatten_models

YAML_TEXT = """
acme:
  endpoint: https://api.acme.test/v1/chat
  format: text|html
  defaults:
    source_lang: auto
    temperature: 0.2
  requirements:
    auth:
      type: header
      key_name: Authorization
      prefix: Bearer
      env: ACME_KEY
      help_url: https://acme.test/keys
    variables:
      folder_id: ACME_FOLDER
  models:
    m1:
      defaults:
        model: acme-1
    m2:
      endpoint: https://api.acme.test/v2/chat
      defaults:
        model: acme-2
        temperature: 0.7
      limits:
        estimated_max_chars: 1234
      notes: Second model
standalone:
  vendor: openai
  endpoint: https://solo.test
  defaults:
    model: solo
"""


@pytest.fixture
def yaml_registry(tmp_path) -> ModelRegistry:
    path = tmp_path / "models.yaml"
    path.write_text(YAML_TEXT, encoding="utf-8")
    return ModelRegistry.from_file(path)


class TestFlatten:
    def test_vendor_models_become_prefixed_keys(self, yaml_registry):
        assert yaml_registry.list() == ["acme:m1", "acme:m2", "standalone"]
        assert yaml_registry.has("acme:m1")
        assert not yaml_registry.has("acme")

    def test_sub_config_deep_merges_over_vendor(self, yaml_registry):
        m1 = yaml_registry.get("acme:m1")
        assert m1["vendor"] == "acme"
        assert m1["defaults"] == {"source_lang": "auto", "temperature": 0.2, "model": "acme-1"}
        assert m1["endpoint"] == "https://api.acme.test/v1/chat"

        m2 = yaml_registry.get("acme:m2")
        assert m2["defaults"]["temperature"] == 0.7
        assert m2["defaults"]["source_lang"] == "auto"
        assert m2["endpoint"] == "https://api.acme.test/v2/chat"
        assert "models" not in m2

    def test_explicit_vendor_is_kept(self):
        flat = flatten_models({"grp": {"vendor": "openai", "models": {"x": {}}}})
        assert flat["grp:x"]["vendor"] == "openai"

    def test_get_returns_copy(self, yaml_registry):
        yaml_registry.get("acme:m1")["defaults"]["model"] = "changed"
        assert yaml_registry.get("acme:m1")["defaults"]["model"] == "acme-1"


class TestAccessors:
    def test_lookups(self, yaml_registry):
        assert yaml_registry.get_endpoint("acme:m2") == "https://api.acme.test/v2/chat"
        assert yaml_registry.get_format("acme:m1") == "text|html"
        assert yaml_registry.get_formats("acme:m1") == ["text", "html"]
        assert yaml_registry.get_formats("standalone") == []
        assert yaml_registry.get_char_limit("acme:m2") == 1234
        assert yaml_registry.get_char_limit("acme:m1") is None
        assert yaml_registry.get_auth_env("acme:m1") == "ACME_KEY"
        assert yaml_registry.get_help_url("acme:m1") == "https://acme.test/keys"
        assert yaml_registry.get_notes("acme:m2") == "Second model"
        assert yaml_registry.get_variables("acme:m1") == {"folder_id": "ACME_FOLDER"}
        assert yaml_registry.get_variables("standalone") == {}

    def test_unknown_key(self, yaml_registry):
        assert yaml_registry.get("nope") is None
        assert yaml_registry.get_endpoint("nope") is None
        with pytest.raises(ConfigurationError):
            yaml_registry.require("nope")

    def test_get_all(self, yaml_registry):
        assert set(yaml_registry.get_all()) == {"acme:m1", "acme:m2", "standalone"}


class TestDrivers:
    def test_unknown_vendor_raises(self, yaml_registry):
        with pytest.raises(ConfigurationError) as exc:
            yaml_registry.get_driver("acme:m1")
        assert exc.value.code == "unknown_vendor"

    def test_unknown_model_raises(self, yaml_registry):
        with pytest.raises(ConfigurationError):
            yaml_registry.get_driver("missing:model")

    def test_driver_by_vendor(self, yaml_registry, prompts):
        driver = yaml_registry.get_driver("standalone", prompts)
        assert isinstance(driver, OpenAIDriver)
        assert driver.prompts is prompts


class TestLoading:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ModelRegistry.from_file(tmp_path / "absent.yaml")

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "models.yaml"
        path.write_text("just a string\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ModelRegistry.from_file(path)

    @pytest.mark.parametrize("content", ["openai: [unclosed\n", "a: b: c\n", "key: \"open string\n"])
    def test_malformed_yaml(self, tmp_path, content):
        path = tmp_path / "models.yaml"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigurationError) as exc:
            ModelRegistry.from_file(path)
        assert exc.value.code == "registry_invalid"
        assert exc.value.details == {"path": str(path)}
        assert isinstance(exc.value.__cause__, yaml.YAMLError)


class TestBundledRegistry:
    @pytest.mark.parametrize("key, driver_cls", [
        ("openai:gpt-4o", OpenAIDriver),
        ("anthropic:claude-sonnet-4", AnthropicDriver),
        ("google:gemini-2.5-flash", GoogleDriver),
        ("xai:grok-3", XaiDriver),
        ("yandex:yandexgpt-lite", YandexDriver),
        ("deepl:free", DeepLDriver),
    ])
    def test_every_vendor_resolves(self, registry, prompts, key, driver_cls):
        assert isinstance(registry.get_driver(key, prompts), driver_cls)

    def test_every_model_has_endpoint_and_auth(self, registry):
        for key in registry.list():
            assert registry.get_endpoint(key), key
            assert registry.get_auth_env(key), key
            assert "text" in registry.get_formats(key), key

    def test_deepl_envs_differ_per_tier(self, registry):
        assert registry.get_auth_env("deepl:free") == "DEEPL_FREE_API_KEY"
        assert registry.get_auth_env("deepl:pro") == "DEEPL_PRO_API_KEY"
        assert registry.get("deepl:pro")["requirements"]["auth"]["type"] == "form"

    def test_yandex_declares_folder_variable(self, registry):
        assert registry.get_variables("yandex:yandexgpt") == {"folder_id": "YANDEX_FOLDER_ID"}
