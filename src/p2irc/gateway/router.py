"""Destination routing: URL path segments -> (server, channel)."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from loguru import logger

from p2irc.core.constants import DEFAULT_IRC_PORT, DIRECT_MESSAGE_MARKER, SITE_NAME
from p2irc.core.errors import InvalidRequestShape, UnknownShortcut

# Characters that would end or split an IRC command line or a JOIN target list.
_FORBIDDEN_SEGMENT_CHARS = frozenset("\r\n\0 ,")


@dataclass(frozen=True)
class Destination:
    """IRC server (``host:port``) and channel, or ``-nick`` for a private message."""

    server: str
    channel: str

    @property
    def host(self) -> str:
        return self.server.rsplit(":", 1)[0].strip("[]")

    @property
    def port(self) -> int:
        return int(self.server.rsplit(":", 1)[1])

    @property
    def irc_channel(self) -> str:
        """Channel name as sent in JOIN/PRIVMSG."""
        return "#" + self.channel.lstrip("#")

    @property
    def is_direct(self) -> bool:
        return self.channel.startswith(DIRECT_MESSAGE_MARKER)

    @property
    def recipient(self) -> str | None:
        """Nick for private messages, None for channel-only destinations."""
        if not self.is_direct:
            return None
        return self.channel[len(DIRECT_MESSAGE_MARKER) :]


def with_default_port(server: str, port: int = DEFAULT_IRC_PORT) -> str:
    if ":" in server:
        return server
    return f"{server}:{port}"


def _check_segment(field: str, value: str) -> None:
    bad = sorted(_FORBIDDEN_SEGMENT_CHARS.intersection(value))
    if bad:
        logger.warning("Rejected {} segment containing {!r}", field, "".join(bad))
        raise InvalidRequestShape(
            code="invalid_segment",
            details={"field": field, "characters": bad},
        )


class AddressResolver:
    """Resolve 0, 1 or 2 path segments against a static shortcut table."""

    def __init__(
        self,
        shortcuts: Mapping[str, tuple[str, str]],
        default: str,
        *,
        default_port: int = DEFAULT_IRC_PORT,
        site_name: str = SITE_NAME,
    ) -> None:
        if default not in shortcuts:
            raise ValueError(f"default shortcut {default!r} not in shortcut table")
        self._shortcuts = dict(shortcuts)
        self._default = default
        self._default_port = default_port
        self._site_name = site_name

    @property
    def default(self) -> Destination:
        server, channel = self._shortcuts[self._default]
        return Destination(with_default_port(server, self._default_port), channel)

    def resolve(self, path: Sequence[str]) -> Destination:
        if len(path) == 0:
            return self.default
        if len(path) == 1:
            token = path[0]
            if token not in self._shortcuts:
                raise UnknownShortcut(
                    f"Unknown shortcut: {token}",
                    code="unknown_shortcut",
                    details={"token": token},
                )
            server, channel = self._shortcuts[token]
        elif len(path) == 2:
            server, channel = path[0], path[1]
        else:
            raise InvalidRequestShape(
                code="invalid_path",
                details={"segments": len(path)},
            )
        _check_segment("server", server)
        _check_segment("channel", channel)
        destination = Destination(with_default_port(server, self._default_port), channel)
        logger.debug("Resolved {} -> {} {}", "/".join(path), destination.server, destination.channel)
        return destination

    def usage(self) -> list[str]:
        """Help lines listing the request format and every shortcut."""
        example = self.default
        lines = [
            (
                "Usage example: cat /etc/pulse/default.pa | curl --data-binary @- "
                f"{self._site_name}/{example.server}/{example.channel}"
            ),
            "Available shortcuts are:",
        ]
        for token, (server, channel) in sorted(self._shortcuts.items()):
            lines.append(f"{token}: {server}, {channel}")
        return lines
