"""Relay domain exceptions. Each one carries the line reported back to the caller."""

from __future__ import annotations


class RelayError(Exception):
    """Base for relay domain errors."""

    default_message = "An error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message or self.default_message)
        self.code = code
        self.details = details or {}
        self.original_error = original_error


class RelayConfigurationError(RelayError):
    """Config validation or load failure."""

    default_message = "Invalid configuration"


class InvalidRequestShape(RelayError):
    """Unsupported path shape, a segment IRC cannot carry, or nothing to send."""

    default_message = "Invalid request"


class UnknownShortcut(InvalidRequestShape):
    """Single path segment that is not in the shortcut table."""

    default_message = "Unknown shortcut"


class PasteServiceFailure(RelayError):
    default_message = "Sorry but an error occured"


class MalformedWebhook(RelayError):
    default_message = "Malformed webhook: expected a JSON object with a string 'ref' field"


class NoTemplateMatch(RelayError):
    default_message = "No webhook template matches this ref"


class PathResolutionError(RelayError):
    default_message = "Webhook field could not be resolved"


class RateStoreError(RelayError):
    default_message = "Error accessing database"


class RateLimitExceeded(RelayError):
    default_message = "You have reached the limit of messages per minute. Please try again later."


class ConnectFailed(RelayError):
    default_message = "Failed to connect to that irc server!"


class IRCProtocolError(RelayError):
    default_message = "Failed to connect to that irc server!"


class DeliveryTimeout(RelayError):
    default_message = "Timeout sending message. Please try again later."
