"""Supporting-document storage.

Provides an abstract base class for document operations with two
implementations:
1. LocalDocumentStore - files on the local filesystem, served under
   STORAGE_PUBLIC_BASE_URL
2. SupabaseDocumentStore - the hosted storage REST API of a Supabase project

Failures surface as StorageSideEffectError so callers can decide whether a
failed upload or removal is fatal.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote

import httpx

from leave_tracker.core.config import settings
from leave_tracker.core.errors import StorageSideEffectError

logger = logging.getLogger(__name__)


def build_document_path(
    class_name: str, student_name: str, filename: str, now: datetime
) -> str:
    """Object path for an uploaded document: ``{class}/{ddMMyy}-{HHmmss}-{student}.{ext}``."""
    sanitized = re.sub(r"[^a-zA-Z0-9]", "_", student_name)
    stem = f"{now:%d%m%y}-{now:%H%M%S}-{sanitized}"
    if "." in filename:
        stem = f"{stem}.{filename.rsplit('.', 1)[-1]}"
    return f"{class_name}/{stem}"


class DocumentStoreBase(ABC):
    """Abstract base class for document storage."""

    @abstractmethod
    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        """Store the document and return its public URL."""
        ...

    @abstractmethod
    async def remove(self, path: str) -> None:
        ...

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        ...

    @abstractmethod
    def path_from_url(self, url: str) -> Optional[str]:
        """Object path behind a public URL, or None if the URL is not ours."""
        ...


class LocalDocumentStore(DocumentStoreBase):
    def __init__(self, root_dir: str, public_base_url: str, bucket: str):
        self.root = Path(root_dir) / bucket
        self._prefix = f"{public_base_url.rstrip('/')}/{bucket}/"

    def _file(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise StorageSideEffectError(f"Invalid document path: {path}")
        return target

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        target = self._file(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageSideEffectError(f"Failed to store document: {e}") from e
        logger.info("Stored document %s (%d bytes)", path, len(content))
        return self.get_public_url(path)

    async def remove(self, path: str) -> None:
        target = self._file(path)
        try:
            await asyncio.to_thread(target.unlink, True)
        except OSError as e:
            raise StorageSideEffectError(f"Failed to delete document: {e}") from e
        logger.info("Removed document %s", path)

    def get_public_url(self, path: str) -> str:
        return self._prefix + quote(path)

    def path_from_url(self, url: str) -> Optional[str]:
        if not url.startswith(self._prefix):
            return None
        return unquote(url[len(self._prefix):]) or None


class SupabaseDocumentStore(DocumentStoreBase):
    """Documents kept in a Supabase storage bucket."""

    def __init__(self, base_url: str, service_key: str, bucket: str):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient() as client:
            try:
                response = await client.request(
                    method,
                    f"{self.base_url}/storage/v1{path}",
                    headers={**self.headers, **kwargs.pop("headers", {})},
                    timeout=30.0,
                    **kwargs,
                )
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                logger.error(
                    "Storage API error: %s %s", e.response.status_code, e.response.text
                )
                raise StorageSideEffectError(
                    f"Storage API returned {e.response.status_code}"
                ) from e
            except httpx.HTTPError as e:
                logger.error("Storage API unreachable: %s", e)
                raise StorageSideEffectError("Storage API is unreachable") from e

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        await self._request(
            "POST",
            f"/object/{self.bucket}/{quote(path)}",
            content=content,
            headers={"Content-Type": content_type},
        )
        return self.get_public_url(path)

    async def remove(self, path: str) -> None:
        await self._request(
            "DELETE", f"/object/{self.bucket}", json={"prefixes": [path]}
        )

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(path)}"

    def path_from_url(self, url: str) -> Optional[str]:
        marker = f"/public/{self.bucket}/"
        if marker not in url:
            return None
        return unquote(url.split(marker, 1)[1]) or None


def get_document_store() -> DocumentStoreBase:
    """Factory function to get the configured document store."""
    if settings.STORAGE_BACKEND == "supabase":
        if not (settings.SUPABASE_URL and settings.SUPABASE_SERVICE_KEY):
            raise RuntimeError(
                "STORAGE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_SERVICE_KEY"
            )
        return SupabaseDocumentStore(
            settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY, settings.STORAGE_BUCKET
        )
    return LocalDocumentStore(
        settings.STORAGE_LOCAL_DIR, settings.STORAGE_PUBLIC_BASE_URL, settings.STORAGE_BUCKET
    )
