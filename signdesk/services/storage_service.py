"""Storage service for Supabase Storage operations on work order files."""

import asyncio
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse

import httpx

from signdesk.core.config import settings
from signdesk.core.exceptions import StorageError
from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)


def storage_key_from_url(file_url: str) -> str:
    """Derive the object key from the trailing path segment of a stored URL.

    Query strings (signed URLs) are dropped and percent-encoding is decoded.
    """
    path = urlparse(file_url).path or file_url
    return unquote(path.rstrip("/").rsplit("/", 1)[-1])


class StorageService:
    """Service for managing files in Supabase storage."""

    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None):
        self.url = (url if url is not None else settings.supabase_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.supabase_api_key
        self.base_api_url = f"{self.url}/storage/v1"
        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "apikey": self.api_key,
        }

    async def upload_file(
        self,
        file: Any,
        bucket: str,
        path: str,
        content_type: str = "application/octet-stream"
    ) -> Dict[str, Any]:
        """Upload a file to Supabase storage.

        Args:
            file: An UploadFile-like object or raw bytes.
            bucket: Target bucket name.
            path: Target path within the bucket.
            content_type: Fallback content type when the file declares none.

        Returns:
            Dict containing the upload result.

        Raises:
            StorageError: If the upload fails.
        """
        upload_url = f"{self.base_api_url}/object/{bucket}/{path}"

        if hasattr(file, "read"):
            content = file.read()
            if asyncio.iscoroutine(content):
                content = await content
        else:
            content = file

        final_content_type = getattr(file, "content_type", None) or content_type

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    upload_url,
                    headers={**self.headers, "Content-Type": final_content_type},
                    content=content,
                    timeout=settings.http_timeout
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error uploading file to Supabase: {str(e)}", exc_info=True)
            raise StorageError(f"Storage upload error: {str(e)}", original_error=e)
        finally:
            if hasattr(file, "seek"):
                result = file.seek(0)
                if asyncio.iscoroutine(result):
                    await result

        if response.status_code != 200:
            LOGGER.error(
                f"Failed to upload file to Supabase: {response.text}",
                extra={"bucket": bucket, "path": path, "status_code": response.status_code}
            )
            raise StorageError(f"Upload failed: {response.text}")

        return response.json()

    async def download_file(self, bucket: str, path: str) -> bytes:
        """Download an object's bytes.

        Raises:
            StorageError: If the object cannot be fetched.
        """
        url = f"{self.base_api_url}/object/{bucket}/{path}"
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, headers=self.headers, timeout=settings.http_timeout)
        except httpx.HTTPError as e:
            raise StorageError(f"Storage download error: {str(e)}", original_error=e)

        if response.status_code != 200:
            raise StorageError(f"Download failed ({response.status_code}): {response.text}")
        return response.content

    def get_public_url(self, bucket: str, path: str) -> str:
        """Public URL of an object in a public bucket."""
        return f"{self.base_api_url}/object/public/{bucket}/{path}"

    async def remove_files(self, bucket: str, paths: List[str]) -> List[Dict[str, Any]]:
        """Delete objects from a bucket.

        Raises:
            StorageError: If Supabase rejects the request.
        """
        if not paths:
            return []
        url = f"{self.base_api_url}/object/{bucket}"
        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    "DELETE",
                    url,
                    headers=self.headers,
                    json={"prefixes": paths},
                    timeout=settings.http_timeout,
                )
        except httpx.HTTPError as e:
            raise StorageError(f"Storage remove error: {str(e)}", original_error=e)

        if response.status_code != 200:
            raise StorageError(f"Remove failed: {response.text}")
        return response.json()
