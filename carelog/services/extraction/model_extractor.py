"""Model-based sheet extraction over the chat-completions API.

One request asks for a ``CareSheet`` json_schema response. The outputs are
run through the recovery chain and the schema validator; an invalid or empty
result gets exactly one relaxed ``json_object`` retry.
"""

import base64
import copy
import json
import re
from typing import Any, Dict, List, Optional, Sequence, Union

from carelog.core.exceptions import AppError
from carelog.core.openai_client import ChatCompletion, OpenAIChatClient
from carelog.models.extraction import SOURCE_MODEL, SheetExtraction
from carelog.prompts.system_prompts import (
    IMAGE_USER_TEXT,
    RELAXED_RETRY_TEXT,
    build_image_system_prompt,
    build_ocr_system_prompt,
    build_ocr_user_text,
)
from carelog.services.extraction.response_parser import (
    STRATEGY_EMPTY,
    events_of,
    select_best_candidate,
)
from carelog.services.extraction.schema_validator import (
    CARE_SHEET_SCHEMA,
    CARE_SHEET_SCHEMA_NAME,
    needs_retry,
    validate_payload,
)
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_TEMPERATURE = 0.1
DEFAULT_HIGH_ACCURACY_MAX_TOKENS = 8192

# Models that reject a custom temperature
_FIXED_TEMPERATURE_MODELS = re.compile(r"^gpt-5", re.IGNORECASE)

UserContent = Union[str, List[Dict[str, Any]]]


def supports_custom_temperature(model: str) -> bool:
    return not _FIXED_TEMPERATURE_MODELS.match(model or "")


def _with_extra_text(content: UserContent, text: str) -> List[Dict[str, Any]]:
    parts = [{"type": "text", "text": content}] if isinstance(content, str) else list(content)
    return parts + [{"type": "text", "text": text}]


class VisionSheetExtractor:
    """Extract a care sheet from an image, a PDF or OCR text.

    Attributes:
        client: Chat-completions client
        model: Default model name; callers may override per request
        high_accuracy: Send ``max_tokens`` and multi-sample ``n``
        max_tokens: Output budget in high-accuracy mode
        n: Number of samples in high-accuracy mode
    """

    def __init__(
        self,
        client: OpenAIChatClient,
        model: str,
        high_accuracy: bool = False,
        max_tokens: Optional[int] = None,
        n: Optional[int] = None,
    ):
        self.client = client
        self.model = model
        self.high_accuracy = high_accuracy
        self.max_tokens = max_tokens
        self.n = n

    def build_request(
        self,
        system_prompt: str,
        user_content: UserContent,
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Schema-constrained chat-completions body."""
        model_name = model or self.model
        body: Dict[str, Any] = {
            "model": model_name,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": CARE_SHEET_SCHEMA_NAME, "schema": CARE_SHEET_SCHEMA},
            },
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
        }
        if supports_custom_temperature(model_name):
            body["temperature"] = DEFAULT_TEMPERATURE
        if self.high_accuracy:
            body["max_tokens"] = self.max_tokens or DEFAULT_HIGH_ACCURACY_MAX_TOKENS
            if self.n and self.n > 1:
                body["n"] = self.n
        return body

    @staticmethod
    def build_relaxed_request(body: Dict[str, Any]) -> Dict[str, Any]:
        """Same request in plain JSON mode with an extra reminder."""
        relaxed = copy.deepcopy(body)
        relaxed["response_format"] = {"type": "json_object"}
        messages = relaxed["messages"]
        messages[-1]["content"] = _with_extra_text(messages[-1]["content"], RELAXED_RETRY_TEXT)
        return relaxed

    async def extract_from_image(
        self,
        image_url: str,
        sheet_hint_iso: str,
        roster_names: Optional[Sequence[str]] = None,
        model: Optional[str] = None,
    ) -> SheetExtraction:
        """Image variant: the model fetches the sheet from ``image_url``."""
        user_content = [
            {"type": "text", "text": IMAGE_USER_TEXT},
            {"type": "image_url", "image_url": {"url": image_url}},
        ]
        body = self.build_request(
            build_image_system_prompt(sheet_hint_iso, roster_names), user_content, model
        )
        return await self._extract(body, allow_retry=True)

    async def extract_from_document(
        self,
        content: bytes,
        filename: str,
        sheet_hint_iso: str,
        roster_names: Optional[Sequence[str]] = None,
        model: Optional[str] = None,
    ) -> SheetExtraction:
        """Document variant: the PDF is sent inline as a base64 file part."""
        encoded = base64.b64encode(content).decode("ascii")
        user_content = [
            {"type": "text", "text": IMAGE_USER_TEXT},
            {
                "type": "file",
                "file": {
                    "filename": filename,
                    "file_data": f"data:application/pdf;base64,{encoded}",
                },
            },
        ]
        body = self.build_request(
            build_image_system_prompt(sheet_hint_iso, roster_names), user_content, model
        )
        return await self._extract(body, allow_retry=True)

    async def extract_from_ocr_text(
        self,
        plain_text: str,
        ocr_json: Any,
        sheet_hint_iso: str,
        roster_names: Optional[Sequence[str]] = None,
        model: Optional[str] = None,
        insist: bool = False,
    ) -> SheetExtraction:
        """OCR-text variant used by the structure-parse flow.

        Callers run their own second attempt with ``insist=True``.
        """
        excerpt = json.dumps(ocr_json if ocr_json is not None else {}, ensure_ascii=False)
        body = self.build_request(
            build_ocr_system_prompt(sheet_hint_iso, roster_names),
            build_ocr_user_text(plain_text, excerpt, insist=insist),
            model,
        )
        return await self._extract(body, allow_retry=False)

    async def _extract(self, body: Dict[str, Any], allow_retry: bool) -> SheetExtraction:
        completion = await self.client.complete(body)
        result = self._interpret(completion, body["model"])

        fallback: Optional[Dict[str, Any]] = None
        if allow_retry and needs_retry(result.payload):
            LOGGER.info(
                "Retrying extraction in relaxed JSON mode",
                extra={"valid": result.valid, "events": len(result.events)},
            )
            retry, fallback = await self._relaxed_retry(body)
            if retry is not None and self._prefer_retry(result, retry):
                result.payload = retry.payload
                result.strategy = retry.strategy
                result.valid = retry.valid

        result.diagnostics["parse_strategy"] = result.strategy
        result.diagnostics["validation"] = result.valid
        result.diagnostics["fallback"] = fallback
        return result

    def _interpret(self, completion: ChatCompletion, model: str) -> SheetExtraction:
        selection = select_best_candidate(completion.contents)
        payload = selection.parsed.payload if isinstance(selection.parsed.payload, dict) else {}
        strategy = selection.parsed.strategy if payload else STRATEGY_EMPTY

        diagnostics = completion.diagnostics()
        diagnostics["model"] = diagnostics.get("model") or model
        diagnostics.update(selection.diagnostics())

        if completion.body.get("error"):
            LOGGER.error(
                "Extraction service returned an error",
                extra={"error": completion.body.get("error")},
            )

        return SheetExtraction(
            source=SOURCE_MODEL,
            payload=payload,
            strategy=strategy,
            valid=validate_payload(payload),
            diagnostics=diagnostics,
        )

    async def _relaxed_retry(self, body: Dict[str, Any]):
        relaxed = self.build_relaxed_request(body)
        try:
            completion = await self.client.complete(relaxed)
        except AppError as e:
            LOGGER.warning("Relaxed extraction retry failed", extra={"error": str(e)})
            return None, {"error": str(e)}

        retry = self._interpret(completion, relaxed["model"])
        fallback = completion.diagnostics()
        fallback["parse_strategy"] = retry.strategy
        fallback["validation"] = retry.valid
        return retry, fallback

    @staticmethod
    def _prefer_retry(first: SheetExtraction, retry: SheetExtraction) -> bool:
        """A valid retry wins; otherwise keep whichever has more events."""
        if retry.valid:
            return True
        return len(events_of(retry.payload)) > len(events_of(first.payload))
