"""Chunk payload assembly: prompts plus inline source images."""

import base64
import logging
from collections.abc import Callable

import httpx

from rugbatch.catalog.prompts import scene_instructions
from rugbatch.config import get_settings
from rugbatch.eventlog import EventLog
from rugbatch.models.batch import BatchPayload, BatchRequest, InlineData, RequestPart
from rugbatch.models.errors import AssemblyError
from rugbatch.models.rug import ProcessedRug

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; RugBatch/1.0)"
MIN_IMAGE_BYTES = 100


class ImageDownloadError(Exception):
    """A source image could not be fetched; the request goes out text-only."""


class PayloadAssembler:
    """Builds the batch upload for a chunk of rugs."""

    def __init__(
        self,
        events: EventLog | None = None,
        include_images: bool | None = None,
        http_client: httpx.AsyncClient | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ):
        settings = get_settings()
        self.events = events or EventLog()
        self.include_images = settings.include_images if include_images is None else include_images
        self.timeout = settings.image_download_timeout_seconds
        self.max_image_bytes = settings.max_image_bytes
        self.progress_callback = progress_callback
        self._http_client = http_client

    async def assemble(self, rugs: list[ProcessedRug], chunk_index: int = 0) -> BatchPayload:
        """Build one request per rug; raises AssemblyError when none could be built."""
        if self._http_client is not None:
            payload = await self._assemble_with_client(self._http_client, rugs, chunk_index)
        else:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                payload = await self._assemble_with_client(client, rugs, chunk_index)

        if not payload.requests:
            raise AssemblyError(
                "No batch requests generated", details={"chunk_index": chunk_index}
            )
        self.events.info(
            "PIPELINE_CHUNK",
            f"Chunk {chunk_index + 1}: Generated {payload.request_count} batch requests",
            chunk_index=chunk_index,
            request_count=payload.request_count,
            skipped=len(payload.skipped),
        )
        return payload

    async def _assemble_with_client(
        self, client: httpx.AsyncClient, rugs: list[ProcessedRug], chunk_index: int
    ) -> BatchPayload:
        payload = BatchPayload(chunk_index=chunk_index)
        total = len(rugs)
        for i, rug in enumerate(rugs, 1):
            parts = [RequestPart(text=scene_instructions(rug.prompt))]
            if self.include_images and rug.image_link:
                try:
                    data = await self.fetch_image(client, rug.image_link)
                    parts.append(RequestPart(inline_data=InlineData(mime_type="image/jpeg", data=data)))
                except ImageDownloadError as e:
                    payload.skipped.append(f"{rug.request_key}: {e}")
                    self.events.warn(
                        "IMAGE",
                        f"Image unavailable for {rug.request_key}, sending text only",
                        chunk_index=chunk_index,
                        sku=rug.sku or None,
                        error=e,
                    )
            payload.requests.append(BatchRequest(key=rug.request_key, parts=parts))
            payload.key_to_sku[rug.request_key] = rug.sku
            if self.progress_callback:
                self.progress_callback(i, total)
        return payload

    async def fetch_image(self, client: httpx.AsyncClient, url: str) -> str:
        """Download an image and return it base64 encoded."""
        try:
            response = await client.get(url, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise ImageDownloadError(f"Image download timed out ({self.timeout:.0f}s)") from e
        except httpx.HTTPError as e:
            raise ImageDownloadError(f"Error downloading image: {e}") from e

        if response.status_code != 200:
            raise ImageDownloadError(f"Failed to download image: HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            logger.warning(f"Unexpected content type {content_type!r} for {url}")

        content = response.content
        if not content:
            raise ImageDownloadError("Downloaded image is empty (0 bytes)")
        if len(content) > self.max_image_bytes:
            raise ImageDownloadError(f"Image too large: {len(content)} bytes")
        if len(content) < MIN_IMAGE_BYTES:
            logger.warning(f"Image suspiciously small: {len(content)} bytes ({url})")

        return base64.b64encode(content).decode("ascii")
