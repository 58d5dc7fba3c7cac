"""Outbound adapters: IRC delivery and the paste service."""

from p2irc.adapters.irc import DeliverySession, DeliveryState, IRCDeliveryEngine
from p2irc.adapters.paste import LongTextSink, PasteResult

__all__ = ["DeliverySession", "DeliveryState", "IRCDeliveryEngine", "LongTextSink", "PasteResult"]
