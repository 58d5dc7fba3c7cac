"""Gateway: destination routing, rate limiting and the request dispatcher."""
