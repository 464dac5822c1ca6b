# app/infrastructure/http/design_fetcher.py
import asyncio
import base64
import binascii
from typing import Optional

import aiohttp

from app.config.log import get_logger
from app.domain.errors import FetchFailed

logger = get_logger(__name__)

DEFAULT_MAX_BYTES = 25 * 1024 * 1024
CHUNK_SIZE = 64 * 1024


class DesignFetcher:
    """Fetches design image bytes over HTTP(S), or unpacks base64 data URLs."""

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        user_agent: Optional[str] = None,
        max_bytes: int = DEFAULT_MAX_BYTES,
    ):
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.headers = {"User-Agent": user_agent} if user_agent else {}
        self.max_bytes = max_bytes

    async def fetch(self, url: str) -> bytes:
        if url.startswith("data:"):
            return self._decode_data_url(url)
        if not url.startswith(("http://", "https://")):
            raise FetchFailed(url, "unsupported URL scheme")

        logger.info(f"Fetching design image from {url[:120]}")
        try:
            async with aiohttp.ClientSession(timeout=self.timeout, headers=self.headers) as session:
                async with session.get(url) as response:
                    if not 200 <= response.status < 300:
                        raise FetchFailed(url, f"HTTP {response.status}", status=response.status)
                    if response.content_length is not None and response.content_length > self.max_bytes:
                        raise FetchFailed(url, self._too_large(response.content_length), status=response.status)
                    # Content-Length may be absent
                    body = bytearray()
                    async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                        body.extend(chunk)
                        if len(body) > self.max_bytes:
                            raise FetchFailed(url, self._too_large(len(body)), status=response.status)
                    return bytes(body)
        except asyncio.TimeoutError as e:
            raise FetchFailed(url, f"timed out after {self.timeout.total}s") from e
        except aiohttp.ClientError as e:
            raise FetchFailed(url, f"{type(e).__name__}: {e}") from e

    def _too_large(self, size: int) -> str:
        return f"design is larger than {self.max_bytes} bytes (got at least {size})"

    def _decode_data_url(self, url: str) -> bytes:
        header, sep, encoded = url.partition(",")
        if not sep or ";base64" not in header:
            raise FetchFailed(url[:70], "only base64 data URLs are supported")
        # 4 base64 chars per 3 bytes
        if len(encoded) * 3 // 4 > self.max_bytes:
            raise FetchFailed(url[:70], self._too_large(len(encoded) * 3 // 4))
        try:
            return base64.b64decode(encoded, validate=False)
        except (binascii.Error, ValueError) as e:
            raise FetchFailed(url[:70], f"invalid base64 payload: {e}") from e
