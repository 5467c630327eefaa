"""Attachment storage client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Optional

import httpx

from zurcher_ledger.config import settings
from zurcher_ledger.domain.exceptions import AttachmentStorageError
from zurcher_ledger.domain.models import AttachmentUpload, StoredAttachment
from zurcher_ledger.infrastructure.observability.metrics import (
    attachment_failure_counter,
    attachment_latency_histogram,
)


class AttachmentStorageClient:
    """Client for the external receipt storage service"""

    def __init__(
        self,
        base_url: str | None = None,
        folder: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.storage_api_base).rstrip("/")
        self.folder = folder or settings.storage_folder
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = max_retries or settings.attachment_max_retries
        self.backoff_base = settings.attachment_backoff_base if backoff_base is None else backoff_base
        self.transport = transport

    async def upload(self, upload: AttachmentUpload) -> StoredAttachment:
        """
        Store a receipt file and return where it lives.

        Raises:
            AttachmentStorageError: After all retries fail or on an invalid response
        """
        response = await self._send(
            "upload",
            "POST",
            f"{self.base_url}/attachments",
            files={"file": (upload.filename, upload.content, upload.content_type)},
            data={"folder": self.folder},
        )
        try:
            body = response.json()
            return StoredAttachment(url=body["url"], storage_id=str(body["id"]))
        except (KeyError, ValueError, TypeError) as e:
            raise AttachmentStorageError(f"Invalid upload response from storage: {e}") from e

    async def delete(self, storage_id: str) -> None:
        """Remove a stored file; a 404 counts as already deleted"""
        await self._send("delete", "DELETE", f"{self.base_url}/attachments/{storage_id}", allow_404=True)

    async def _send(self, operation: str, method: str, url: str, allow_404: bool = False, **kwargs) -> httpx.Response:
        """
        Send a request with retry logic.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ... (base * 2^(attempt-1))
        - Retries on 5xx errors and network failures; 4xx fails immediately
        - Tracks latency histogram and failure counter per operation
        """
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while True:
                try:
                    with attachment_latency_histogram.labels(operation=operation).time():
                        response = await client.request(method, url, **kwargs)
                    if allow_404 and response.status_code == 404:
                        return response
                    response.raise_for_status()
                    return response

                except httpx.HTTPStatusError as e:
                    attempt += 1
                    attachment_failure_counter.labels(operation=operation).inc()
                    if e.response.status_code < 500 or attempt >= self.max_retries:
                        raise AttachmentStorageError(
                            f"Storage {operation} failed: HTTP {e.response.status_code}"
                        ) from e

                except httpx.RequestError as e:
                    attempt += 1
                    attachment_failure_counter.labels(operation=operation).inc()
                    if attempt >= self.max_retries:
                        raise AttachmentStorageError(
                            f"Storage {operation} failed after {attempt} attempts: {e}"
                        ) from e

                backoff = self.backoff_base * (2 ** (attempt - 1))
                logging.warning(
                    f"Storage {operation} attempt {attempt} failed, retrying in {backoff}s",
                    extra={"step": f"attachment_{operation}_retry", "attempt": attempt},
                )
                await asyncio.sleep(backoff)
