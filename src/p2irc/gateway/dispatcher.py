"""Request dispatcher: route, build the message, rate limit, deliver, report."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from p2irc.core.errors import InvalidRequestShape, PasteServiceFailure, RelayError
from p2irc.formatting.irc_lines import message_lines

if TYPE_CHECKING:
    from p2irc.adapters.irc import IRCDeliveryEngine
    from p2irc.adapters.paste import LongTextSink
    from p2irc.formatting.webhook import WebhookTemplateEngine
    from p2irc.gateway.rate_limit import RateLimiter
    from p2irc.gateway.router import AddressResolver, Destination
    from p2irc.request import InboundRequest

SUCCESS_LINE = "Sent successfully!"
INTERNAL_ERROR_LINE = "Internal error. Please try again later."


@dataclass
class DispatchResult:
    """Body lines for the response. delivered is True only after a completed send."""

    lines: list[str] = field(default_factory=list)
    delivered: bool = False

    @property
    def body(self) -> str:
        return "".join(f"{line}\n" for line in self.lines)


class RequestDispatcher:
    """Runs one request through resolver, message building, rate limiter and delivery engine.

    Every failure becomes exactly one error line; nothing is retried.
    """

    def __init__(
        self,
        resolver: AddressResolver,
        sink: LongTextSink,
        webhooks: WebhookTemplateEngine,
        limiter: RateLimiter,
        engine: IRCDeliveryEngine,
        *,
        index_path: str | Path | None = None,
    ) -> None:
        self._resolver = resolver
        self._sink = sink
        self._webhooks = webhooks
        self._limiter = limiter
        self._engine = engine
        self._index_path = Path(index_path) if index_path else None

    async def dispatch(self, request: InboundRequest) -> DispatchResult:
        if request.is_get:
            return DispatchResult(self._index_lines())

        result = DispatchResult()
        try:
            await self._relay(request, result)
        except RelayError as exc:
            logger.info("Request from {} failed: {} ({})", request.remote_addr, exc, type(exc).__name__)
            result.lines.append(str(exc))
        except Exception:
            logger.exception("Unexpected error handling request from {}", request.remote_addr)
            result.lines.append(INTERNAL_ERROR_LINE)
        return result

    async def _relay(self, request: InboundRequest, result: DispatchResult) -> None:
        try:
            destination = self._resolver.resolve(request.path)
        except InvalidRequestShape as exc:
            logger.info("Invalid request path {}: {}", "/".join(request.path), exc)
            result.lines.append(str(exc))
            result.lines.extend(self._resolver.usage())
            return

        result.lines.append(f"Sending to {destination.server} at {destination.irc_channel}")
        lines = message_lines(await self._message_text(request))
        if not lines:
            raise InvalidRequestShape("Empty message", code="empty_message")

        await self._limiter.check(request.remote_addr)
        await self._deliver(destination, lines, request.nick)
        result.lines.append(SUCCESS_LINE)
        result.delivered = True

    async def _message_text(self, request: InboundRequest) -> str:
        if request.is_webhook:
            # Template output is short and never pasted
            return self._webhooks.render(request.body)
        pasted = await self._sink.shorten(request.text())
        if not pasted.ok:
            raise PasteServiceFailure(pasted.message, code="paste_failed")
        return pasted.message

    async def _deliver(self, destination: Destination, lines: list[str], nick: str | None) -> None:
        logger.info("Delivering {} lines to {} {}", len(lines), destination.server, destination.irc_channel)
        await self._engine.deliver(destination, lines, nick=nick)

    def _index_lines(self) -> list[str]:
        if self._index_path is not None and self._index_path.is_file():
            return self._index_path.read_text(encoding="utf-8").splitlines()
        if self._index_path is not None:
            logger.warning("Index page {} not found; serving usage text", self._index_path)
        return self._resolver.usage()
