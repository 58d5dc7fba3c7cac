"""Paste service client: replace an oversized message with a paste URL."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from loguru import logger

from p2irc.core.constants import MAX_MESSAGE_LENGTH, PASTE_FIELD, PASTE_TIMEOUT, PASTE_URL


@dataclass(frozen=True)
class PasteResult:
    """Replacement message. When ok is False, message explains the failure and delivery must stop."""

    message: str
    ok: bool


class LongTextSink:
    """Posts long text to a paste endpoint as a single multipart form field. One attempt, no retry."""

    def __init__(
        self,
        url: str = PASTE_URL,
        *,
        field: str = PASTE_FIELD,
        threshold: int = MAX_MESSAGE_LENGTH,
        timeout: float = PASTE_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._field = field
        self._threshold = threshold
        self._timeout = timeout
        self._transport = transport

    def needs_paste(self, text: str) -> bool:
        return len(text) > self._threshold

    async def shorten(self, text: str) -> PasteResult:
        """Return text unchanged when short enough, otherwise paste it."""
        if not self.needs_paste(text):
            return PasteResult(text, True)
        return await self.paste(text)

    async def paste(self, text: str) -> PasteResult:
        # (None, value) makes httpx send a plain form field inside multipart/form-data
        files = {self._field: (None, text)}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._url, files=files)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Paste to {} failed: {}", self._url, exc)
            return PasteResult(f"Sorry but an error occured: {exc}", False)
        url = resp.text.strip()
        logger.info("Pasted {} chars to {}", len(text), url)
        return PasteResult(url, True)
