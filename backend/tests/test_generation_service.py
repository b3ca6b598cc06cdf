"""Tests for the Gemini generation client."""

import json

import httpx
import pytest

from mathquest.services.generation_service import (
    GenerationFailed,
    ProblemGenerator,
    extract_text,
)


def make_generator(handler, api_key="test-key") -> ProblemGenerator:
    return ProblemGenerator(
        api_key=api_key,
        model="gemini-2.5-flash",
        base_url="https://gemini.test/v1beta/",
        timeout_seconds=5.0,
        transport=httpx.MockTransport(handler),
    )


def candidate_response(*texts: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text} for text in texts]}}]}


class TestGenerate:
    @pytest.mark.asyncio
    async def test_returns_generated_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers["x-goog-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=candidate_response("Solve ", "3x = 12"))

        text = await make_generator(handler).generate("Make an algebra problem")

        assert text == "Solve 3x = 12"
        assert seen["url"] == "https://gemini.test/v1beta/models/gemini-2.5-flash:generateContent"
        assert seen["key"] == "test-key"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "Make an algebra problem"

    @pytest.mark.asyncio
    async def test_timeout_raises_generation_failed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(GenerationFailed, match="timed out"):
            await make_generator(handler).generate("prompt")

    @pytest.mark.asyncio
    async def test_http_error_raises_generation_failed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": {"message": "quota"}})

        with pytest.raises(GenerationFailed, match="429"):
            await make_generator(handler).generate("prompt")

    @pytest.mark.asyncio
    async def test_connection_error_raises_generation_failed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GenerationFailed, match="unreachable"):
            await make_generator(handler).generate("prompt")

    @pytest.mark.asyncio
    async def test_invalid_json_raises_generation_failed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>oops</html>")

        with pytest.raises(GenerationFailed, match="invalid JSON"):
            await make_generator(handler).generate("prompt")

    @pytest.mark.asyncio
    async def test_missing_api_key_raises_generation_failed(self):
        def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
            raise AssertionError("should not be called")

        with pytest.raises(GenerationFailed, match="not configured"):
            await make_generator(handler, api_key=None).generate("prompt")


class TestExtractText:
    def test_blocked_prompt_has_no_candidates(self):
        with pytest.raises(GenerationFailed, match="no candidates"):
            extract_text({"promptFeedback": {"blockReason": "SAFETY"}})

    def test_empty_text_is_rejected(self):
        with pytest.raises(GenerationFailed, match="empty"):
            extract_text(candidate_response("   "))

    def test_non_text_parts_are_ignored(self):
        payload = {"candidates": [{"content": {"parts": [{"inlineData": {}}, {"text": "7 x 8"}]}}]}

        assert extract_text(payload) == "7 x 8"
