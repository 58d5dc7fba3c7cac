"""IRC delivery engine: connect a session, run it under a deadline."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

from loguru import logger

from p2irc.adapters.irc.session import DeliverySession, DeliveryState
from p2irc.core.constants import CONNECT_TIMEOUT, DELIVERY_TIMEOUT, SITE_NAME
from p2irc.core.errors import ConnectFailed, DeliveryTimeout

if TYPE_CHECKING:
    from p2irc.gateway.router import Destination


class IRCDeliveryEngine:
    """Single-attempt delivery. No reconnect, no retry."""

    def __init__(
        self,
        nick: str = SITE_NAME,
        *,
        realname: str | None = None,
        connect_timeout: float = CONNECT_TIMEOUT,
        delivery_timeout: float = DELIVERY_TIMEOUT,
    ) -> None:
        self._nick = nick
        self._realname = realname or nick
        self._connect_timeout = connect_timeout
        self._delivery_timeout = delivery_timeout

    async def open(
        self,
        destination: Destination,
        lines: Sequence[str],
        *,
        nick: str | None = None,
    ) -> DeliverySession:
        """Connect to the destination server. Raise ConnectFailed on DNS, TCP or timeout errors."""
        session = DeliverySession(
            destination,
            lines,
            nick=nick or self._nick,
            realname=self._realname,
        )
        try:
            await asyncio.wait_for(
                session.connect(hostname=destination.host, port=destination.port, tls=False),
                timeout=self._connect_timeout,
            )
        except (OSError, ValueError, TimeoutError) as exc:
            logger.warning("Connect to {} failed: {!r}", destination.server, exc)
            await session.close()
            raise ConnectFailed(
                code="connect_failed",
                details={"server": destination.server},
                original_error=exc,
            ) from exc
        logger.info("Connected to {}", destination.server)
        return session

    async def run(self, session: DeliverySession, *, timeout: float | None = None) -> DeliveryState:
        """Race the session against the deadline.

        On expiry the session is cancelled and disconnected, so a late server
        reply can no longer trigger a send.
        """
        deadline = self._delivery_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(session.run(), timeout=deadline)
        except TimeoutError as exc:
            logger.warning("Delivery to {} timed out after {}s", session.destination.server, deadline)
            raise DeliveryTimeout(
                code="delivery_timeout",
                details={"server": session.destination.server, "timeout": deadline},
                original_error=exc,
            ) from exc
        finally:
            await session.close()

    async def deliver(
        self,
        destination: Destination,
        lines: Sequence[str],
        *,
        nick: str | None = None,
        timeout: float | None = None,
    ) -> DeliveryState:
        session = await self.open(destination, lines, nick=nick)
        return await self.run(session, timeout=timeout)
