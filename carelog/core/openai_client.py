"""OpenAI chat-completions client used as the extraction service."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from carelog.core.base_http_client import BaseHTTPClient
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class ChatCompletion:
    """A chat-completions response reduced to what extraction needs.

    Attributes:
        status_code: HTTP status of the call
        body: Full decoded response body
        contents: Message content of every returned choice, in order
    """

    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)
    contents: List[str] = field(default_factory=list)

    @property
    def first_content(self) -> str:
        return self.contents[0] if self.contents else ""

    def diagnostics(self, preview_chars: int = 1200) -> Dict[str, Any]:
        """Response metadata kept in the audit trail."""
        return {
            "id": self.body.get("id"),
            "model": self.body.get("model"),
            "usage": self.body.get("usage"),
            "error": self.body.get("error"),
            "http_status": self.status_code,
            "text_preview": self.first_content[:preview_chars] or None,
            "num_choices": len(self.contents),
        }


class OpenAIChatClient:
    """Wrapper for the OpenAI chat-completions endpoint.

    Unlike a plain text client it keeps every choice of a multi-sample
    (``n > 1``) request, because callers pick the best candidate themselves.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1/chat/completions",
        timeout: int = 120,
        max_retries: int = 2,
    ):
        """Initialize the client.

        Args:
            api_key: OpenAI API key
            base_url: Chat-completions endpoint URL
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
        """
        self.api_key = api_key
        self.base_url = base_url
        self.client = BaseHTTPClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    async def complete(self, payload: Dict[str, Any]) -> ChatCompletion:
        """Send a chat-completions request.

        Args:
            payload: Request body (model, messages, response_format, ...)

        Returns:
            ChatCompletion with the content of every choice

        Raises:
            APIClientError: If the call fails after retries
        """
        response = await self.client.send(endpoint="", method="POST", payload=payload)

        try:
            body = response.json()
        except ValueError:
            LOGGER.warning(
                "Non-JSON response from extraction service",
                extra={"status_code": response.status_code},
            )
            body = {
                "error": {
                    "message": "Non-JSON response",
                    "text_preview": response.text[:1200],
                }
            }

        contents: List[str] = []
        for choice in body.get("choices") or []:
            content = (choice.get("message") or {}).get("content") or ""
            contents.append(content if isinstance(content, str) else "")

        if not contents:
            LOGGER.warning(
                "Empty response from extraction service",
                extra={"status_code": response.status_code, "error": body.get("error")},
            )

        return ChatCompletion(status_code=response.status_code, body=body, contents=contents)
