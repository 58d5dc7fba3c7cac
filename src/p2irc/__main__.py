"""CGI entrypoint. One process handles one request and always exits 0."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import IO, Any

import yaml
from loguru import logger

from p2irc import __version__
from p2irc.adapters.irc import IRCDeliveryEngine
from p2irc.adapters.paste import LongTextSink
from p2irc.config import Config, load_config_with_env
from p2irc.core.errors import RelayConfigurationError
from p2irc.formatting.webhook import WebhookTemplateEngine
from p2irc.gateway.dispatcher import INTERNAL_ERROR_LINE, DispatchResult, RequestDispatcher
from p2irc.gateway.rate_limit import RateLimiter, RedisCounterStore
from p2irc.gateway.router import AddressResolver
from p2irc.request import InboundRequest

CONTENT_TYPE_HEADER = "Content-Type: text/html"

# Third-party libraries to intercept and route through loguru
_INTERCEPTED_LIBRARIES = ["pydle", "httpx", "httpcore", "redis"]


def _intercept_logging(level: str) -> None:
    """Route third-party library logs to loguru."""

    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                log_level: str | int = logger.level(record.levelname).name
            except ValueError:
                log_level = record.levelno
            msg = record.getMessage().replace("{", "{{").replace("}", "}}")
            logger.patch(
                lambda r: r.update(
                    name=record.name,
                    function=record.funcName,
                    line=record.lineno,
                ),
            ).opt(exception=record.exc_info).log(log_level, msg)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for lib in _INTERCEPTED_LIBRARIES:
        lib_logger = logging.getLogger(lib)
        lib_logger.handlers = [InterceptHandler()]
        lib_logger.propagate = False
        lib_logger.setLevel(level)


def _safe_message_filter(record: Any) -> bool:
    """Escape braces/angles in log messages to prevent format/tag errors."""
    if isinstance(record.get("message"), str):
        msg = record["message"]
        msg = msg.replace("{", "{{").replace("}", "}}").replace("<", "\\<")
        record["message"] = msg
    return True


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru on stderr; stdout carries the CGI response.

    Level: verbose=True or LOG_LEVEL=DEBUG enables DEBUG; otherwise INFO.
    """
    level = "INFO"
    if verbose:
        level = "DEBUG"
    else:
        env_level = (os.environ.get("LOG_LEVEL") or "").upper()
        if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = env_level

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=("<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"),
        filter=_safe_message_filter,
    )
    _intercept_logging(level)


def load_settings(config_path: Path) -> Config:
    """Load config from path (plus .env) into a read-only Config."""
    return Config(load_config_with_env(config_path))


def build_dispatcher(config: Config) -> tuple[RequestDispatcher, RedisCounterStore | None]:
    """Wire every component from config. The store is returned so the caller can close it."""
    store = RedisCounterStore.from_url(config.redis_url) if config.max_per_minute else None
    dispatcher = RequestDispatcher(
        resolver=AddressResolver(
            config.shortcuts,
            config.default_shortcut,
            default_port=config.default_port,
            site_name=config.site_name,
        ),
        sink=LongTextSink(
            config.paste_url,
            field=config.paste_field,
            threshold=config.max_message_length,
            timeout=config.paste_timeout,
        ),
        webhooks=WebhookTemplateEngine(config.webhook_templates),
        limiter=RateLimiter(
            store,
            config.max_per_minute,
            key_prefix=config.rate_limit_key_prefix,
        ),
        engine=IRCDeliveryEngine(
            config.nick,
            connect_timeout=config.connect_timeout,
            delivery_timeout=config.delivery_timeout,
        ),
        index_path=config.index_path,
    )
    return dispatcher, store


def read_body(environ: Mapping[str, str], stream: IO[bytes]) -> bytes:
    length = (environ.get("CONTENT_LENGTH") or "").strip()
    if length.isdigit():
        return stream.read(int(length))
    return stream.read()


def write_response(result: DispatchResult, out: IO[str] | None = None) -> None:
    out = out or sys.stdout
    out.write(f"{CONTENT_TYPE_HEADER}\n\n")
    out.write(result.body)
    out.flush()


async def _run(
    dispatcher: RequestDispatcher,
    store: RedisCounterStore | None,
    request: InboundRequest,
) -> DispatchResult:
    try:
        return await dispatcher.dispatch(request)
    finally:
        if store is not None:
            await store.close()


def main(argv: list[str] | None = None) -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(description="p2irc: relay a POSTed message to an IRC channel (CGI)")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path(os.environ.get("P2IRC_CONFIG", "config.yaml")),
        help="Path to config file (default: $P2IRC_CONFIG or config.yaml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    try:
        config = load_settings(args.config)
        dispatcher, store = build_dispatcher(config)
    except (RelayConfigurationError, yaml.YAMLError, ValueError) as exc:
        logger.error("Cannot start with config {}: {}", args.config, exc)
        write_response(DispatchResult([INTERNAL_ERROR_LINE]))
        return

    environ = dict(os.environ)
    method = (environ.get("REQUEST_METHOD") or "").upper()
    body = b"" if method == "GET" else read_body(environ, sys.stdin.buffer)
    request = InboundRequest.from_environ(environ, body)
    logger.debug("{} /{} from {}", request.method, "/".join(request.path), request.remote_addr)

    write_response(asyncio.run(_run(dispatcher, store, request)))


if __name__ == "__main__":
    main()
