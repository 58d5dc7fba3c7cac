"""p2irc: relay an HTTP request body to an IRC channel, one request per process."""

__version__ = "0.1.0"
