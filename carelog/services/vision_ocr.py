"""Google Vision text detection client."""

import time
from typing import Any, Dict, List, Optional

from carelog.core.base_http_client import BaseHTTPClient
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)


class VisionAPIClient(BaseHTTPClient):
    """Vision authenticates with a ``key`` query parameter, not a bearer token."""

    def default_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}


class VisionOCRService:
    """Run ``TEXT_DETECTION`` over an image URL.

    Attributes:
        api_key: Google Cloud API key
        api_url: ``images:annotate`` endpoint URL
        language_hints: OCR language hints
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://vision.googleapis.com/v1/images:annotate",
        language_hints: Optional[List[str]] = None,
        timeout: int = 120,
        max_retries: int = 3,
    ):
        """Initialize the Vision OCR service.

        Args:
            api_key: Google Cloud API key
            api_url: ``images:annotate`` endpoint URL
            language_hints: OCR language hints, ``["ja"]`` by default
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
        """
        self.api_key = api_key
        self.api_url = api_url
        self.language_hints = language_hints or ["ja"]
        self.client = VisionAPIClient(
            api_key=api_key,
            base_url=api_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    def build_request(self, image_url: str) -> Dict[str, Any]:
        return {
            "requests": [
                {
                    "image": {"source": {"imageUri": image_url}},
                    "features": [{"type": "TEXT_DETECTION"}],
                    "imageContext": {"languageHints": self.language_hints},
                }
            ]
        }

    async def annotate(self, image_url: str) -> Dict[str, Any]:
        """Return the raw ``images:annotate`` response for one image.

        Raises:
            APIClientError: If the call fails after retries
        """
        start_time = time.time()
        response = await self.client.call_api(
            method="POST",
            payload=self.build_request(image_url),
            params={"key": self.api_key},
        )

        annotations = ((response.get("responses") or [{}])[0] or {}).get("textAnnotations") or []
        LOGGER.info(
            "Vision text detection completed",
            extra={
                "annotations": len(annotations),
                "processing_time": round(time.time() - start_time, 2),
            },
        )
        return response
