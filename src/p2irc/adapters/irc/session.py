"""One-shot IRC delivery on a pydle client: register, join, send, quit.

The session is driven by pydle callbacks:

    CONNECTING --on_connect--> REGISTERED --JOIN sent--> JOINING
    JOINING --own on_join--> JOINED --PRIVMSGs--> SENT --QUIT--> CLOSED

For a ``-nick`` destination the lines are sent as private messages in
on_connect, before the JOIN, and the channel join still happens afterwards.
Any failure leaves the session FAILED; cancellation leaves it TIMED_OUT.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

import pydle
from loguru import logger

from p2irc.core.errors import IRCProtocolError
from p2irc.formatting.irc_lines import strip_line_breaks

if TYPE_CHECKING:
    from p2irc.gateway.router import Destination

_MAX_NICK_RETRIES = 3
_QUIT_MESSAGE = "Delivered"


class DeliveryState(Enum):
    CONNECTING = "connecting"
    REGISTERED = "registered"
    JOINING = "joining"
    JOINED = "joined"
    SENT = "sent"
    CLOSED = "closed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class DeliverySession(pydle.Client):
    """Pydle client for a single connection attempt. Never reused, never reconnects."""

    RECONNECT_ON_ERROR: ClassVar[bool] = False

    def __init__(
        self,
        destination: Destination,
        lines: Sequence[str],
        *,
        nick: str,
        realname: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(nick, realname=realname or nick, **kwargs)
        self._destination = destination
        self._lines = [strip_line_breaks(line) for line in lines]
        self._requested_nick = nick
        self._nick_retries = 0
        self._done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self.state = DeliveryState.CONNECTING

    @property
    def destination(self) -> Destination:
        return self._destination

    async def run(self) -> DeliveryState:
        """Wait until the lines are sent, then quit. Raise IRCProtocolError on any failure."""
        try:
            await self._done
        except asyncio.CancelledError:
            logger.warning("Delivery to {} cancelled in state {}", self._destination.server, self.state.value)
            self.state = DeliveryState.TIMED_OUT
            raise
        with contextlib.suppress(OSError, pydle.Error):
            await self.quit(_QUIT_MESSAGE)
        self.state = DeliveryState.CLOSED
        return self.state

    async def on_connect(self) -> None:
        """Registered: private-message a ``-nick`` recipient, then join the channel."""
        await super().on_connect()
        if self.state is not DeliveryState.CONNECTING:
            return
        self.state = DeliveryState.REGISTERED
        logger.info("Registered on {} as {}", self._destination.server, self.nickname)
        try:
            recipient = self._destination.recipient
            if recipient:
                await self._send_lines(recipient)
            self.state = DeliveryState.JOINING
            await self.join(self._destination.irc_channel)
        except (OSError, pydle.Error) as exc:
            self._fail(self._send_error(exc))

    async def on_join(self, channel: str, user: str) -> None:
        """Send once our own JOIN for the destination channel is echoed."""
        await super().on_join(channel, user)
        if self.state is not DeliveryState.JOINING:
            return
        if not self.is_same_nick(self.nickname, user):
            return
        if not self.is_same_channel(channel, self._destination.irc_channel):
            return
        self.state = DeliveryState.JOINED
        try:
            await self._send_lines(self._destination.irc_channel)
        except (OSError, pydle.Error) as exc:
            self._fail(self._send_error(exc))
            return
        self.state = DeliveryState.SENT
        logger.info("Sent {} lines to {} on {}", len(self._lines), channel, self._destination.server)
        if not self._done.done():
            self._done.set_result(None)

    async def on_raw_433(self, message) -> None:
        """Nick in use: pydle retries with ``_`` appended; give up after a few attempts."""
        if not self.registered:
            if self._nick_retries >= _MAX_NICK_RETRIES:
                self._fail(
                    IRCProtocolError(
                        f"Nickname {self._requested_nick} is already in use",
                        code="nick_in_use",
                        details={"nick": self._requested_nick, "attempts": self._nick_retries + 1},
                    )
                )
                return
            self._nick_retries += 1
            logger.debug("Nick in use on {}, retry {}", self._destination.server, self._nick_retries)
        await super().on_raw_433(message)

    async def _on_refused(self, message) -> None:
        command = str(message.command).upper()
        reason = message.params[-1] if message.params else command
        logger.warning("IRC server {} refused: {} {}", self._destination.server, command, reason)
        self._fail(
            IRCProtocolError(
                f"IRC server refused: {reason}",
                code="server_refused",
                details={"command": command, "state": self.state.value},
            )
        )

    # ERR_NOSUCHCHANNEL, ERR_TOOMANYCHANNELS, ERR_CHANNELISFULL, ERR_INVITEONLYCHAN,
    # ERR_BANNEDFROMCHAN, ERR_BADCHANNELKEY, ERR_NEEDREGGEDNICK
    on_raw_403 = on_raw_405 = on_raw_471 = on_raw_473 = _on_refused
    on_raw_474 = on_raw_475 = on_raw_477 = _on_refused
    # ERR_ERRONEUSNICKNAME, ERR_YOUREBANNEDCREEP, server ERROR before closing the link
    on_raw_432 = on_raw_465 = on_raw_error = _on_refused

    async def on_disconnect(self, expected: bool) -> None:
        await super().on_disconnect(expected)
        if not self._done.done():
            self._fail(
                IRCProtocolError(
                    "Connection closed by the irc server before the message was sent",
                    code="unexpected_eof",
                    details={"state": self.state.value},
                )
            )

    async def close(self) -> None:
        """Disconnect. Safe to call more than once."""
        if self.connected:
            with contextlib.suppress(OSError):
                await self.disconnect(expected=True)

    async def _send_lines(self, target: str) -> None:
        for line in self._lines:
            await self.message(target, line)

    def _send_error(self, exc: Exception) -> IRCProtocolError:
        return IRCProtocolError(
            code="io_error",
            details={"state": self.state.value},
            original_error=exc,
        )

    def _fail(self, exc: IRCProtocolError) -> None:
        if self._done.done():
            return
        self.state = DeliveryState.FAILED
        self._done.set_exception(exc)
