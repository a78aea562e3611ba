"""Unit tests for the chat-completions sheet extractor."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from carelog.core.exceptions import APIClientError
from carelog.core.openai_client import ChatCompletion
from carelog.prompts.system_prompts import AT_LEAST_ONE_EVENT_TEXT, RELAXED_RETRY_TEXT
from carelog.services.extraction.model_extractor import (
    VisionSheetExtractor,
    supports_custom_temperature,
)

EVENT = {"resident_name": "山田太郎", "category": "urination", "hour": 8, "count": 1}


def _completion(*contents, body=None):
    return ChatCompletion(status_code=200, body=body or {"id": "cmpl-1", "model": "gpt-4o-mini"}, contents=list(contents))


def _valid(*events):
    return json.dumps({"sheet": {"date_iso": "2025-09-25"}, "events": list(events)}, ensure_ascii=False)


@pytest.fixture
def client():
    client = MagicMock()
    client.complete = AsyncMock()
    return client


class TestBuildRequest:

    def test_schema_response_format_and_temperature(self, client):
        body = VisionSheetExtractor(client, "gpt-4o-mini").build_request("sys", "user")
        assert body["response_format"]["type"] == "json_schema"
        assert body["response_format"]["json_schema"]["name"] == "CareSheet"
        assert body["temperature"] == pytest.approx(0.1)
        assert "max_tokens" not in body
        assert "n" not in body

    def test_fixed_temperature_models(self, client):
        body = VisionSheetExtractor(client, "gpt-4o-mini").build_request("sys", "user", model="gpt-5-mini")
        assert body["model"] == "gpt-5-mini"
        assert "temperature" not in body
        assert not supports_custom_temperature("gpt-5")
        assert supports_custom_temperature("gpt-4o")

    def test_high_accuracy_mode(self, client):
        extractor = VisionSheetExtractor(client, "gpt-4o", high_accuracy=True, n=3)
        body = extractor.build_request("sys", "user")
        assert body["max_tokens"] == 8192
        assert body["n"] == 3

    def test_relaxed_request_appends_reminder(self, client):
        extractor = VisionSheetExtractor(client, "gpt-4o")
        body = extractor.build_request("sys", [{"type": "text", "text": "read"}])
        relaxed = extractor.build_relaxed_request(body)

        assert relaxed["response_format"] == {"type": "json_object"}
        assert relaxed["messages"][-1]["content"][-1] == {"type": "text", "text": RELAXED_RETRY_TEXT}
        # input body untouched
        assert len(body["messages"][-1]["content"]) == 1


class TestExtractFromImage:

    @pytest.mark.asyncio
    async def test_valid_first_response_needs_no_retry(self, client):
        client.complete.return_value = _completion(_valid(EVENT))
        extractor = VisionSheetExtractor(client, "gpt-4o-mini")

        result = await extractor.extract_from_image("https://x/y.jpg", "2025-09-25", ["山田太郎"])

        assert client.complete.await_count == 1
        assert result.valid is True
        assert result.events == [EVENT]
        assert result.diagnostics["parse_strategy"] == "direct"
        assert result.diagnostics["fallback"] is None
        sent = client.complete.await_args.args[0]
        assert "山田太郎" in sent["messages"][0]["content"]
        assert sent["messages"][1]["content"][1]["image_url"]["url"] == "https://x/y.jpg"

    @pytest.mark.asyncio
    async def test_invalid_response_is_replaced_by_valid_retry(self, client):
        client.complete.side_effect = [
            _completion("```json\n" + json.dumps({"events": [EVENT]}) + "\n```"),
            _completion(_valid(EVENT, {**EVENT, "hour": 9})),
        ]
        extractor = VisionSheetExtractor(client, "gpt-4o-mini")

        result = await extractor.extract_from_image("https://x/y.jpg", "2025-09-25")

        assert client.complete.await_count == 2
        assert client.complete.await_args_list[1].args[0]["response_format"] == {"type": "json_object"}
        assert result.valid is True
        assert len(result.events) == 2
        assert result.diagnostics["fallback"]["validation"] is True

    @pytest.mark.asyncio
    async def test_invalid_retry_with_fewer_events_keeps_first(self, client):
        client.complete.side_effect = [
            _completion(json.dumps({"events": [EVENT, EVENT]})),
            _completion("sorry"),
        ]
        extractor = VisionSheetExtractor(client, "gpt-4o-mini")

        result = await extractor.extract_from_image("https://x/y.jpg", "2025-09-25")

        assert len(result.events) == 2
        assert result.valid is False
        assert result.diagnostics["fallback"]["parse_strategy"] == "empty"

    @pytest.mark.asyncio
    async def test_retry_failure_is_recorded_not_raised(self, client):
        client.complete.side_effect = [
            _completion(_valid()),
            APIClientError("API Client Error 400: bad request"),
        ]
        extractor = VisionSheetExtractor(client, "gpt-4o-mini")

        result = await extractor.extract_from_image("https://x/y.jpg", "2025-09-25")

        assert result.events == []
        assert "400" in result.diagnostics["fallback"]["error"]

    @pytest.mark.asyncio
    async def test_first_call_failure_propagates(self, client):
        client.complete.side_effect = APIClientError("down")
        extractor = VisionSheetExtractor(client, "gpt-4o-mini")

        with pytest.raises(APIClientError):
            await extractor.extract_from_image("https://x/y.jpg", "2025-09-25")

    @pytest.mark.asyncio
    async def test_best_of_multiple_choices(self, client):
        client.complete.return_value = _completion(_valid(EVENT), _valid(EVENT, {**EVENT, "hour": 10}))
        extractor = VisionSheetExtractor(client, "gpt-4o", high_accuracy=True, n=2)

        result = await extractor.extract_from_image("https://x/y.jpg", "2025-09-25")

        assert len(result.events) == 2
        assert result.diagnostics["choice_index"] == 1
        assert result.diagnostics["choice_events"] == [1, 2]
        assert result.diagnostics["num_choices"] == 2


@pytest.mark.asyncio
async def test_document_variant_sends_base64_file(client):
    client.complete.return_value = _completion(_valid(EVENT))
    extractor = VisionSheetExtractor(client, "gpt-4o-mini")

    await extractor.extract_from_document(b"%PDF-1.4", "sheet.pdf", "2025-09-25")

    part = client.complete.await_args.args[0]["messages"][1]["content"][1]
    assert part["type"] == "file"
    assert part["file"]["filename"] == "sheet.pdf"
    assert part["file"]["file_data"] == "data:application/pdf;base64,JVBERi0xLjQ="


@pytest.mark.asyncio
async def test_ocr_text_variant_never_retries(client):
    client.complete.return_value = _completion(_valid())
    extractor = VisionSheetExtractor(client, "gpt-5")

    result = await extractor.extract_from_ocr_text("text", {"responses": []}, "2025-09-25", insist=True)

    assert client.complete.await_count == 1
    assert result.events == []
    user_text = client.complete.await_args.args[0]["messages"][1]["content"]
    assert AT_LEAST_ONE_EVENT_TEXT in user_text
