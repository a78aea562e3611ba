"""Storage service for reading uploaded sheets from Supabase storage."""

from typing import Dict, Tuple

import httpx

from carelog.core.base_http_client import BaseHTTPClient
from carelog.core.exceptions import AppError, StorageError
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)


def split_storage_path(storage_path: str) -> Tuple[str, str]:
    """``"<bucket>/<path/within/bucket>"`` -> ``(bucket, path)``."""
    bucket, _, path = (storage_path or "").strip("/").partition("/")
    if not bucket or not path:
        raise StorageError(f"Invalid storage path: {storage_path!r}")
    return bucket, path


def is_pdf(storage_path: str) -> bool:
    return (storage_path or "").lower().endswith(".pdf")


class SupabaseStorageClient(BaseHTTPClient):
    """HTTP client for the Supabase storage REST API."""

    def default_headers(self) -> Dict[str, str]:
        headers = super().default_headers()
        headers["apikey"] = self.api_key
        return headers


class StorageService:
    """Service for resolving and fetching files in Supabase storage."""

    def __init__(
        self,
        url: str,
        service_role_key: str,
        signed_url_ttl_seconds: int = 600,
        timeout: int = 60,
    ):
        """Initialize the storage service.

        Args:
            url: Supabase project URL
            service_role_key: Service role key used for storage access
            signed_url_ttl_seconds: Lifetime of created signed URLs
            timeout: Request timeout in seconds
        """
        self.url = (url or "").rstrip("/")
        self.base_api_url = f"{self.url}/storage/v1"
        self.signed_url_ttl_seconds = signed_url_ttl_seconds
        self.timeout = timeout
        self.client = SupabaseStorageClient(
            api_key=service_role_key,
            base_url=self.base_api_url,
            timeout=timeout,
        )

    def public_url(self, storage_path: str) -> str:
        """Public URL of an object in a public bucket."""
        bucket, path = split_storage_path(storage_path)
        return f"{self.base_api_url}/object/public/{bucket}/{path}"

    async def create_signed_url(self, storage_path: str) -> str:
        """Generate a short-lived signed URL for a stored object.

        Raises:
            StorageError: If URL generation fails
        """
        bucket, path = split_storage_path(storage_path)
        try:
            data = await self.client.call_api(
                endpoint=f"/object/sign/{bucket}/{path}",
                method="POST",
                payload={"expiresIn": self.signed_url_ttl_seconds},
            )
        except AppError as e:
            LOGGER.error(
                f"Failed to generate signed URL: {str(e)}",
                extra={"bucket": bucket, "path": path},
            )
            raise StorageError(f"Signed URL error: {str(e)}", original_error=e) from e

        signed_path = data.get("signedURL") or data.get("signedUrl")
        if not signed_path:
            raise StorageError("Supabase response did not contain signedURL")

        # Supabase answers with a path relative to either the project or the storage API
        if signed_path.startswith("/storage/v1"):
            return f"{self.url}{signed_path}"
        if signed_path.startswith("/"):
            return f"{self.base_api_url}{signed_path}"
        return signed_path

    async def download(self, storage_path: str) -> bytes:
        """Fetch the bytes of a stored object.

        Raises:
            StorageError: If the object cannot be read
        """
        bucket, path = split_storage_path(storage_path)
        try:
            response = await self.client.send(endpoint=f"/object/{bucket}/{path}", method="GET")
        except AppError as e:
            LOGGER.error(
                f"Failed to download object: {str(e)}",
                extra={"bucket": bucket, "path": path},
            )
            raise StorageError(f"Storage download error: {str(e)}", original_error=e) from e
        return response.content

    async def probe(self, url: str) -> int:
        """HEAD the URL and return its status, or -1 when unreachable."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.head(url)
            return response.status_code
        except httpx.HTTPError as e:
            LOGGER.warning("File URL probe failed", extra={"url": url, "error": str(e)})
            return -1
