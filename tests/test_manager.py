"""End-to-end tests for the translation pipeline with a mocked transport."""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from glossa.ai.exceptions import (
    AuthError,
    ConfigurationError,
    MarkersNotFound,
    MissingRequiredConfig,
    TransportError,
    Truncated,
    ValidationError,
    VendorApiError,
)
from glossa.ai.registry import ModelRegistry
from glossa.translation.manager import JSON_SCHEMA_CAPTURED, JSON_SCHEMA_VALIDATED
from glossa.translation.schema import REPAIR_MISSING_NULLS

OPENAI = "openai:gpt-4o"
SECRET = "sk-live-secret-123"

ANCHOR_SAMPLE = 'Read <a href="https://example.com/page?id=1">link</a> or https://another.tld'
JSON_SAMPLE = '{"article":{"name":"X","tags":["a","b"]}}'


def reply_with(body, status=200):
    """Handler answering every request with the same body."""

    def handler(request):
        return httpx.Response(status, text=body)

    return handler


class TestDryRun:
    def test_url_inside_anchor_round_trips(self, make_manager):
        result = make_manager().translate(
            ANCHOR_SAMPLE, OPENAI, fmt="html", api_key=SECRET, filters=["url", "html_a"], dry_run=True,
        )
        assert result.result == ANCHOR_SAMPLE
        assert result.prepared == "Read @@2@@ or @@1@@"
        assert result.filter_stats == [{"filter": "url", "count": 2}, {"filter": "html_a", "count": 1}]
        assert result.http_status == 0
        assert result.raw_response_body == "[dry-run]"
        assert result.consumed == {}

    def test_json_document_passes_all_checks(self, make_manager):
        result = make_manager().translate(JSON_SAMPLE, OPENAI, fmt="json", api_key=SECRET, dry_run=True)
        assert result.result == JSON_SAMPLE
        assert json.loads(result.result) == {"article": {"name": "X", "tags": ["a", "b"]}}

    def test_verbose_json_marks_schema_steps(self, make_manager):
        result = make_manager().translate(
            JSON_SAMPLE, OPENAI, fmt="json", api_key=SECRET, dry_run=True, verbose=True,
        )
        assert result.debug_request.startswith(JSON_SCHEMA_CAPTURED)
        assert result.debug_response.endswith(JSON_SCHEMA_VALIDATED)

    def test_debug_request_shows_masked_payload_without_key(self, make_manager):
        result = make_manager().translate(
            "See https://x.io", OPENAI, api_key=SECRET, filters=["url"], dry_run=True,
        )
        assert "[dry-run] request not sent" in result.debug_request
        assert "See @@0@@" in result.debug_request
        assert SECRET not in result.debug_request
        assert "Bearer ***" in result.debug_request

    def test_lengths_and_to_dict(self, make_manager):
        result = make_manager().translate("https://x.io ok", OPENAI, api_key=SECRET, filters=["url"], dry_run=True)
        assert result.lengths == {"original": 15, "prepared": 8, "translated": 15}
        data = result.to_dict()
        assert set(data) == {
            "original", "prepared", "result", "http_status", "debug_request", "debug_response",
            "raw_response_body", "consumed", "lengths", "filter_stats",
        }
        assert data["filter_stats"] == [{"filter": "url", "count": 1}]

    def test_feedback_callback(self, make_manager):
        messages = []
        make_manager().translate("Hi", OPENAI, api_key=SECRET, dry_run=True,
                                 on_feedback=lambda level, msg: messages.append((level, msg)))
        assert ("info", "Dry-run: request was not sent") in messages

    def test_yandex_variables_reach_request(self, make_manager):
        result = make_manager().translate(
            "Hallo", "yandex:yandexgpt-lite", api_key=SECRET, variables={"folder_id": "b1gfolder"}, dry_run=True,
        )
        assert "gpt://b1gfolder/yandexgpt-lite/latest" in result.debug_request
        assert "Authorization: Api-Key ***" in result.debug_request

    def test_yandex_without_folder(self, make_manager):
        with pytest.raises(MissingRequiredConfig) as exc:
            make_manager().translate("Hallo", "yandex:yandexgpt-lite", api_key=SECRET, dry_run=True)
        assert exc.value.details["stage"] == "build_request"

    def test_config_default_filters(self, make_manager, app_config):
        app_config["translation"]["filters"] = ["url"]
        result = make_manager().translate("go https://x.io", OPENAI, api_key=SECRET, dry_run=True)
        assert result.prepared == "go @@0@@"


class TestPreflightErrors:
    def test_unknown_model(self, make_manager):
        with pytest.raises(ConfigurationError) as exc:
            make_manager().translate("x", "nobody:nothing", api_key=SECRET, dry_run=True)
        assert exc.value.code == "unknown_model"
        assert exc.value.details["stage"] == "start"

    def test_unknown_format(self, make_manager):
        with pytest.raises(ConfigurationError, match="Invalid format"):
            make_manager().translate("x", OPENAI, fmt="xml", api_key=SECRET, dry_run=True)

    def test_format_not_declared_by_model(self, make_manager):
        registry = ModelRegistry.from_mapping({
            "plain": {"vendor": "openai", "endpoint": "https://x.test", "format": "text",
                      "defaults": {"model": "m"}},
        })
        with pytest.raises(ConfigurationError, match="does not support format 'html'"):
            make_manager(model_registry=registry).translate("<p>x</p>", "plain", fmt="html", dry_run=True)

    def test_unknown_repair(self, make_manager):
        with pytest.raises(ConfigurationError, match="Unknown repair feature"):
            make_manager().translate("{}", OPENAI, fmt="json", api_key=SECRET, dry_run=True, repairs=["magic"])

    def test_missing_api_key_even_in_dry_run(self, make_manager):
        with pytest.raises(AuthError) as exc:
            make_manager().translate("x", OPENAI, dry_run=True)
        assert "$OPENAI_API_KEY" in str(exc.value)
        assert exc.value.details["stage"] == "authenticate"

    def test_invalid_html_input(self, make_manager):
        with pytest.raises(ValidationError) as exc:
            make_manager().translate("<p><strong>oops</p>", OPENAI, fmt="html", api_key=SECRET, dry_run=True)
        assert exc.value.errors
        assert exc.value.details["stage"] == "pre_validate"

    def test_invalid_json_input(self, make_manager):
        with pytest.raises(ValidationError) as exc:
            make_manager().translate('{"a": }', OPENAI, fmt="json", api_key=SECRET, dry_run=True)
        assert exc.value.errors[0].startswith("JSON syntax error")

    @pytest.mark.parametrize("text", ['{"a": NaN}', '[Infinity]', '{"a": -Infinity}'])
    def test_non_standard_json_constants_rejected(self, make_manager, text):
        with pytest.raises(ValidationError) as exc:
            make_manager().translate(text, OPENAI, fmt="json", api_key=SECRET, dry_run=True)
        assert exc.value.details["stage"] == "pre_validate"
        assert "Invalid JSON constant" in exc.value.errors[0]

    def test_deeply_nested_json_input(self, make_manager):
        text = "[" * 100000 + "]" * 100000
        with pytest.raises(ValidationError) as exc:
            make_manager().translate(text, OPENAI, fmt="json", api_key=SECRET, dry_run=True)
        assert exc.value.details["stage"] == "pre_validate"

    def test_validation_can_be_disabled(self, make_manager):
        result = make_manager().translate(
            "<p><strong>oops</p>", OPENAI, fmt="html", api_key=SECRET, dry_run=True, validate=False,
        )
        assert result.result == "<p><strong>oops</p>"

    def test_reserved_placeholder_syntax_rejected(self, make_manager):
        with pytest.raises(ValidationError) as exc:
            make_manager().translate("keep @@0@@ and https://x.io", OPENAI, api_key=SECRET,
                                     filters=["url"], dry_run=True)
        assert exc.value.details["stage"] == "pre_validate"

    def test_placeholder_syntax_allowed_without_filters(self, make_manager):
        result = make_manager().translate("keep @@0@@", OPENAI, api_key=SECRET, dry_run=True)
        assert result.result == "keep @@0@@"

    def test_text_too_long(self, make_manager):
        registry = ModelRegistry.from_mapping({
            "tiny": {"vendor": "openai", "endpoint": "https://x.test", "defaults": {"model": "m"},
                     "limits": {"estimated_max_chars": 2010}},
        })
        manager = make_manager(model_registry=registry)
        assert manager.translate("x" * 10, "tiny", dry_run=True).result == "x" * 10
        with pytest.raises(ValidationError) as exc:
            manager.translate("x" * 11, "tiny", dry_run=True)
        assert exc.value.details["stage"] == "mask"
        assert "exceeds limit 10" in exc.value.errors[0]


class TestLiveFlow:
    def test_openai_round_trip(self, make_manager, chat_reply):
        seen = {}
        usage = {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, text=chat_reply("Besuchen Sie @@0@@ heute", usage=usage))

        result = make_manager(handler).translate(
            "Visit https://example.com today", OPENAI, api_key=SECRET, filters=["url"],
            source_lang="EN", target_lang="DE",
        )

        assert seen["auth"] == f"Bearer {SECRET}"
        assert seen["payload"]["model"] == "gpt-4o"
        assert "@@0@@" in seen["payload"]["messages"][1]["content"]
        assert "https://example.com" not in seen["payload"]["messages"][1]["content"]
        assert "DE" in seen["payload"]["messages"][0]["content"]

        assert result.result == "Besuchen Sie https://example.com heute"
        assert result.http_status == 200
        assert result.consumed == {
            "tokens": {"total": 15, "breakdown": {"prompt": 10, "completion": 5, "cached": 0}},
        }
        assert SECRET not in result.debug_request
        assert SECRET not in result.debug_response

    def test_missing_markers_keeps_diagnostics(self, make_manager, chat_reply):
        manager = make_manager(reply_with(chat_reply("Bonjour", markers=False)))
        with pytest.raises(MarkersNotFound) as exc:
            manager.translate("Hello", OPENAI, api_key=SECRET)
        details = exc.value.details
        assert details["stage"] == "parse_response"
        assert details["http_status"] == 200
        assert "Bonjour" in details["raw_response_body"]
        assert SECRET not in details["debug_request"]

    def test_truncated_reply(self, make_manager, chat_reply):
        manager = make_manager(reply_with(chat_reply("Bonj", finish_reason="length")))
        with pytest.raises(Truncated):
            manager.translate("Hello", OPENAI, api_key=SECRET)

    def test_server_error_is_transport_error(self, make_manager):
        manager = make_manager(reply_with("upstream exploded", status=500))
        with pytest.raises(TransportError) as exc:
            manager.translate("Hello", OPENAI, api_key=SECRET)
        assert not isinstance(exc.value, VendorApiError)
        assert exc.value.status == 500

    def test_vendor_error_redacts_echoed_key(self, make_manager):
        body = json.dumps({"error": {"message": f"Incorrect API key provided: {SECRET}"}})
        manager = make_manager(reply_with(body, status=401))
        with pytest.raises(VendorApiError) as exc:
            manager.translate("Hello", OPENAI, api_key=SECRET)
        assert exc.value.status == 401
        assert "Incorrect API key provided" in str(exc.value)
        assert SECRET not in str(exc.value)
        assert SECRET not in exc.value.details["raw_response_body"]

    def test_network_failure(self, make_manager):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError) as exc:
            make_manager(handler).translate("Hello", OPENAI, api_key=SECRET)
        assert exc.value.details["stage"] == "transmit"

    def test_broken_html_from_vendor(self, make_manager, chat_reply):
        manager = make_manager(reply_with(chat_reply("<p><strong>kaputt</p>")))
        with pytest.raises(ValidationError) as exc:
            manager.translate("<p><strong>ok</strong></p>", OPENAI, fmt="html", api_key=SECRET)
        assert exc.value.details["stage"] == "post_validate"

    def test_non_standard_json_constant_from_vendor(self, make_manager, chat_reply):
        manager = make_manager(reply_with(chat_reply('{"a": NaN}')))
        with pytest.raises(ValidationError) as exc:
            manager.translate('{"a": 1}', OPENAI, fmt="json", api_key=SECRET)
        assert exc.value.details["stage"] == "post_validate"
        assert "Invalid JSON constant: NaN" in exc.value.errors[0]

    def test_deepl_form_auth_and_json(self, make_manager):
        seen = {}

        def handler(request):
            seen["form"] = parse_qs(request.content.decode("utf-8"))
            text = seen["form"]["text"][0].replace("Hallo", "Hello")
            return httpx.Response(200, json={"translations": [{"detected_source_language": "DE", "text": text}]})

        result = make_manager(handler).translate('{"greeting":"Hallo"}', "deepl:free", fmt="json", api_key=SECRET)

        assert seen["form"]["auth_key"] == [SECRET]
        assert seen["form"]["tag_handling"] == ["html"]
        assert "{" not in seen["form"]["text"][0]
        assert result.result == '{"greeting":"Hello"}'
        assert result.consumed == {}


class TestJsonRepairs:
    ORIGINAL = '{"a": null, "b": "Hallo"}'

    def test_dropped_null_is_a_schema_error(self, make_manager, chat_reply):
        manager = make_manager(reply_with(chat_reply('{"b": "Hello"}')))
        with pytest.raises(ValidationError) as exc:
            manager.translate(self.ORIGINAL, OPENAI, fmt="json", api_key=SECRET)
        assert exc.value.errors == ["Structure mismatch after translation at $.a"]

    def test_repair_restores_dropped_null(self, make_manager, chat_reply):
        messages = []
        manager = make_manager(reply_with(chat_reply('{"b": "Hello"}')))
        result = manager.translate(
            self.ORIGINAL, OPENAI, fmt="json", api_key=SECRET, repairs=[REPAIR_MISSING_NULLS],
            on_feedback=lambda level, msg: messages.append(level),
        )
        assert json.loads(result.result) == {"a": None, "b": "Hello"}
        assert list(json.loads(result.result)) == ["a", "b"]
        assert "warning" in messages

    def test_repair_is_noop_when_nothing_dropped(self, make_manager, chat_reply):
        manager = make_manager(reply_with(chat_reply('{"a": null, "b": "Hello"}')))
        result = manager.translate(self.ORIGINAL, OPENAI, fmt="json", api_key=SECRET,
                                   repairs=[REPAIR_MISSING_NULLS])
        assert result.result == '{"a": null, "b": "Hello"}'
