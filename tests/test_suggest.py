"""Tests for the Gemini suggestion client."""

import asyncio
import json
import threading
import time

import pytest
from aiohttp import test_utils, web

from params import DEFAULT_CONFIG, TEMPLATES, DistributionType, Settings
from suggest import (
    RESPONSE_SCHEMA,
    SYSTEM_INSTRUCTION,
    MissingCredentialError,
    SuggestionAPIError,
    SuggestionClient,
    SuggestionError,
    SuggestionRunner,
    build_request_body,
    parse_response,
)


def _gemini_payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


async def _suggest_against(handler, prompt, settings=None):
    """Run one suggestion against a local aiohttp server standing in for Gemini."""
    app = web.Application()
    app.router.add_post("/models/{target}", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        client = SuggestionClient(settings or Settings(api_key="test-key"), timeout=5.0)
        client.BASE_URL = f"http://{server.host}:{server.port}"
        return await client.suggest(prompt)
    finally:
        await server.close()


# =============================================================================
# Request / response shape
# =============================================================================

class TestRequestBody:
    def test_carries_prompt_and_instruction(self):
        body = build_request_body("a blizzard")
        assert body["contents"][0]["parts"][0]["text"] == "a blizzard"
        assert body["system_instruction"]["parts"][0]["text"] == SYSTEM_INSTRUCTION

    def test_asks_for_structured_json(self):
        gen = build_request_body("x")["generationConfig"]
        assert gen["responseMimeType"] == "application/json"
        assert gen["responseSchema"] is RESPONSE_SCHEMA

    def test_schema_requires_every_field(self):
        assert set(RESPONSE_SCHEMA["required"]) == set(DEFAULT_CONFIG.to_dict())


class TestParseResponse:
    def test_valid_payload(self):
        cfg = parse_response(_gemini_payload(json.dumps(TEMPLATES["SATURN"].to_dict())))
        assert cfg == TEMPLATES["SATURN"]

    def test_text_split_over_parts(self):
        text = json.dumps(DEFAULT_CONFIG.to_dict())
        data = {"candidates": [{"content": {"parts": [{"text": text[:10]}, {"text": text[10:]}]}}]}
        assert parse_response(data) == DEFAULT_CONFIG

    def test_no_candidates(self):
        with pytest.raises(SuggestionAPIError, match="No candidates"):
            parse_response({"candidates": []})

    def test_top_level_array(self):
        with pytest.raises(SuggestionAPIError, match="Malformed"):
            parse_response([])

    def test_candidate_not_an_object(self):
        with pytest.raises(SuggestionAPIError, match="Malformed"):
            parse_response({"candidates": ["x"]})

    def test_part_not_an_object(self):
        with pytest.raises(SuggestionAPIError, match="Malformed"):
            parse_response({"candidates": [{"content": {"parts": ["x"]}}]})

    def test_missing_content(self):
        with pytest.raises(SuggestionAPIError, match="Malformed"):
            parse_response({"candidates": [{"finishReason": "SAFETY"}]})

    def test_empty_text(self):
        with pytest.raises(SuggestionAPIError, match="No response text"):
            parse_response(_gemini_payload("   "))

    def test_not_json(self):
        with pytest.raises(SuggestionAPIError, match="not JSON"):
            parse_response(_gemini_payload("here is your config!"))

    def test_invalid_config_rejected_whole(self):
        data = DEFAULT_CONFIG.to_dict()
        data["distribution"] = "SPIRAL"
        with pytest.raises(SuggestionAPIError, match="Rejected configuration") as exc:
            parse_response(_gemini_payload(json.dumps(data)))
        assert exc.value.response_body is not None

    def test_count_is_clamped_not_rejected(self):
        data = DEFAULT_CONFIG.to_dict()
        data["count"] = 50000
        assert parse_response(_gemini_payload(json.dumps(data))).count == 10000


# =============================================================================
# Client
# =============================================================================

class TestSuggestionClient:
    def test_missing_credential(self):
        client = SuggestionClient(Settings(api_key=None))
        assert client.available is False
        with pytest.raises(MissingCredentialError):
            asyncio.run(client.suggest("a blizzard"))

    def test_missing_credential_is_a_suggestion_error(self):
        assert issubclass(MissingCredentialError, SuggestionError)

    def test_empty_prompt(self):
        client = SuggestionClient(Settings(api_key="k"))
        with pytest.raises(SuggestionError, match="Empty prompt"):
            asyncio.run(client.suggest("   "))

    def test_url_uses_configured_model(self):
        client = SuggestionClient(Settings(api_key="k", model="gemini-x"))
        assert client._build_url().endswith("/models/gemini-x:generateContent")

    def test_successful_round_trip(self):
        seen = {}

        async def handler(request):
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["target"] = request.match_info["target"]
            seen["body"] = await request.json()
            return web.json_response(_gemini_payload(json.dumps(TEMPLATES["HEARTS"].to_dict())))

        cfg = asyncio.run(_suggest_against(handler, "  love  "))

        assert cfg.distribution is DistributionType.HEART
        assert seen["key"] == "test-key"
        assert seen["target"] == "gemini-2.5-flash:generateContent"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "love"

    def test_http_error_status(self):
        async def handler(request):
            return web.Response(status=403, text="forbidden")

        with pytest.raises(SuggestionAPIError) as exc:
            asyncio.run(_suggest_against(handler, "rain"))
        assert exc.value.status_code == 403
        assert exc.value.response_body == "forbidden"

    def test_non_json_body(self):
        async def handler(request):
            return web.Response(text="<html>oops</html>")

        with pytest.raises(SuggestionAPIError, match="not JSON"):
            asyncio.run(_suggest_against(handler, "rain"))

    def test_connection_failure(self):
        client = SuggestionClient(Settings(api_key="k"), timeout=2.0)
        # Port 9 (discard) on localhost is closed in test environments
        client.BASE_URL = "http://127.0.0.1:9"
        with pytest.raises(SuggestionError, match="Request error"):
            asyncio.run(client.suggest("rain"))


# =============================================================================
# Runner
# =============================================================================

class FakeClient:
    def __init__(self, result=None, error=None, gate=None):
        self.result = result
        self.error = error
        self.gate = gate
        self.prompts = []

    async def suggest(self, prompt):
        self.prompts.append(prompt)
        if self.gate is not None:
            await asyncio.get_running_loop().run_in_executor(None, self.gate.wait, 5.0)
        if self.error is not None:
            raise self.error
        return self.result


def _wait_result(runner, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = runner.pop_result()
        if result is not None:
            return result
        time.sleep(0.01)
    raise AssertionError("runner produced no result")


class TestSuggestionRunner:
    def test_success(self):
        runner = SuggestionRunner(FakeClient(result=DEFAULT_CONFIG))
        assert runner.submit("calm") is True
        assert _wait_result(runner) == (DEFAULT_CONFIG, None)

    def test_failure_is_reported_as_message(self):
        runner = SuggestionRunner(FakeClient(error=SuggestionAPIError("API error: 500", 500)))
        runner.submit("storm")
        cfg, err = _wait_result(runner)
        assert cfg is None
        assert err == "API error: 500"

    def test_malformed_payload_is_reported(self):
        class MalformedClient:
            async def suggest(self, prompt):
                return parse_response([])

        runner = SuggestionRunner(MalformedClient())
        runner.submit("storm")
        cfg, err = _wait_result(runner)
        assert cfg is None
        assert "Malformed" in err

    def test_unexpected_error_is_reported(self):
        runner = SuggestionRunner(FakeClient(error=KeyError("candidates")))
        runner.submit("storm")
        cfg, err = _wait_result(runner)
        assert cfg is None
        assert err.startswith("Unexpected error")

    def test_one_request_at_a_time(self):
        gate = threading.Event()
        client = FakeClient(result=DEFAULT_CONFIG, gate=gate)
        runner = SuggestionRunner(client)

        assert runner.submit("first") is True
        assert runner.busy is True
        assert runner.submit("second") is False

        gate.set()
        _wait_result(runner)
        assert client.prompts == ["first"]

        deadline = time.monotonic() + 5.0
        while runner.busy and time.monotonic() < deadline:
            time.sleep(0.01)
        assert runner.busy is False

    def test_no_result_when_idle(self):
        assert SuggestionRunner(FakeClient()).pop_result() is None
