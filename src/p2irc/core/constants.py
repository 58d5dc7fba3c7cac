"""Protocol and deployment constants."""

from __future__ import annotations

SITE_NAME = "p2irc"

DEFAULT_IRC_PORT = 6667

# Bodies longer than this are pasted and replaced by the paste URL
MAX_MESSAGE_LENGTH = 400

# IRC lines are 512 bytes including prefix, command and target
IRC_LINE_MAX_BYTES = 450

DELIVERY_TIMEOUT = 10.0
CONNECT_TIMEOUT = 10.0
PASTE_TIMEOUT = 10.0

PASTE_URL = "http://ix.io"
PASTE_FIELD = "f:1"

MAX_PER_MINUTE = 2
RATE_LIMIT_WINDOW_SECONDS = 60
RATE_LIMIT_KEY_PREFIX = "sendirc_"
REDIS_URL = "redis://localhost:6379/0"

INDEX_HTML = "index.html"

# Leading channel character meaning "private message to this nick"
DIRECT_MESSAGE_MARKER = "-"

# Template field path resolved from the document's ref instead of a lookup
SELF_FIELD = "self"

DEFAULT_SHORTCUT = "ro"
DEFAULT_SHORTCUTS: dict[str, tuple[str, str]] = {
    "linux": ("irc.libera.chat:6667", "linux"),
    "ro": ("irc.dot.org.es:6667", "romanian"),
}

DEFAULT_WEBHOOK_TEMPLATES: list[dict[str, object]] = [
    {
        "ref_prefix": "refs/heads/",
        "format": "[{}] {} pushed: {} - {}",
        "fields": ["repository.name", "sender.login", "head_commit.message", "repository.url"],
    },
    {
        "ref_prefix": "refs/tags/v",
        "format": "[{}] {} released version {} - {}",
        "fields": ["repository.name", "sender.login", SELF_FIELD, "repository.url"],
    },
]
