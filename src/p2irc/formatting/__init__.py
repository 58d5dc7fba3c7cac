"""Message formatting: webhook templates and IRC line splitting."""

from p2irc.formatting.irc_lines import message_lines, split_irc_message, strip_line_breaks
from p2irc.formatting.webhook import WebhookTemplate, WebhookTemplateEngine, resolve_path

__all__ = [
    "WebhookTemplate",
    "WebhookTemplateEngine",
    "message_lines",
    "resolve_path",
    "split_irc_message",
    "strip_line_breaks",
]
