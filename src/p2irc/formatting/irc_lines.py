"""Turn a message body into IRC-safe PRIVMSG payloads."""

from __future__ import annotations

from p2irc.core.constants import IRC_LINE_MAX_BYTES

_LINE_BREAKS = ("\r", "\n")


def strip_line_breaks(text: str) -> str:
    """Remove CR and LF so a payload can never carry a second IRC command."""
    for ch in _LINE_BREAKS:
        text = text.replace(ch, "")
    return text


def split_irc_message(content: str, max_bytes: int = IRC_LINE_MAX_BYTES) -> list[str]:
    """Split one line into chunks of at most max_bytes UTF-8 bytes.

    Prefers breaking after a space in the second half of a chunk. A code point
    is never split across chunks.
    """
    if not content:
        return []
    if len(content.encode("utf-8", errors="replace")) <= max_bytes:
        return [content]

    chunks: list[str] = []
    current: list[str] = []
    size = 0
    last_space = -1
    for ch in content:
        width = len(ch.encode("utf-8", errors="replace"))
        while current and size + width > max_bytes:
            cut = last_space + 1 if last_space >= len(current) // 2 else len(current)
            chunks.append("".join(current[:cut]))
            current = current[cut:]
            size = sum(len(c.encode("utf-8", errors="replace")) for c in current)
            last_space = max((i for i, c in enumerate(current) if c == " "), default=-1)
        if ch == " ":
            last_space = len(current)
        current.append(ch)
        size += width
    if current:
        chunks.append("".join(current))
    return chunks


def message_lines(message: str, max_bytes: int = IRC_LINE_MAX_BYTES) -> list[str]:
    """Split a message on line breaks into independent chat lines.

    Each line is stripped of any remaining CR/LF and empty lines are dropped,
    since IRC rejects an empty PRIVMSG.
    """
    lines: list[str] = []
    for line in message.splitlines():
        line = strip_line_breaks(line)
        if not line.strip():
            continue
        lines.extend(split_irc_message(line, max_bytes=max_bytes))
    return lines
