"""IRC adapter package: one-shot delivery on a pydle client."""

from p2irc.adapters.irc.engine import IRCDeliveryEngine
from p2irc.adapters.irc.session import DeliverySession, DeliveryState

__all__ = ["DeliverySession", "DeliveryState", "IRCDeliveryEngine"]
