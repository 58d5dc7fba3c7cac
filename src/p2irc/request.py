"""Inbound request: the CGI environment reduced to what the relay needs."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import unquote

from loguru import logger

_NICK_RE = re.compile(r"^[A-Za-z\[\]\\`_^{|}][A-Za-z0-9\[\]\\`_^{|}-]{0,29}$")
NICK_HEADER = "HTTP_X_IRC_NICK"
JSON_CONTENT_TYPE = "application/json"


def split_path(uri: str) -> tuple[str, ...]:
    """Split a request URI into non-empty, percent-decoded segments. Query string is dropped."""
    path = uri.split("?", 1)[0]
    return tuple(unquote(p) for p in path.split("/") if p)


def is_valid_nick(nick: str) -> bool:
    return bool(_NICK_RE.match(nick))


@dataclass(frozen=True)
class InboundRequest:
    """One relay request. Built once per invocation."""

    method: str
    path: tuple[str, ...]
    remote_addr: str = ""
    nick: str | None = None
    content_type: str | None = None
    body: bytes = b""

    @property
    def is_get(self) -> bool:
        return self.method == "GET"

    @property
    def is_webhook(self) -> bool:
        """True when the body is a JSON event document."""
        if not self.content_type:
            return False
        return self.content_type.split(";", 1)[0].strip().lower() == JSON_CONTENT_TYPE

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @classmethod
    def from_environ(cls, environ: Mapping[str, str], body: bytes = b"") -> InboundRequest:
        uri = environ.get("REQUEST_URI") or environ.get("PATH_INFO") or ""
        nick = (environ.get(NICK_HEADER) or "").strip() or None
        if nick and not is_valid_nick(nick):
            logger.warning("Ignoring invalid nick override {!r}", nick)
            nick = None
        return cls(
            method=(environ.get("REQUEST_METHOD") or "").upper(),
            path=split_path(uri),
            remote_addr=environ.get("REMOTE_ADDR", ""),
            nick=nick,
            content_type=environ.get("CONTENT_TYPE") or None,
            body=body,
        )
