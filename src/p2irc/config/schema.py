"""Config schema and read-only accessor."""

from __future__ import annotations

import copy
import os
from typing import Any

from loguru import logger

from p2irc.core import constants
from p2irc.core.errors import RelayConfigurationError
from p2irc.formatting.webhook import WebhookTemplate

# Env keys that override config (read once, at construction)
_ENV_OVERRIDE_KEYS = (
    "RELAY_REDIS_URL",
    "RELAY_MAX_PER_MINUTE",
    "RELAY_DELIVERY_TIMEOUT",
)


# Numeric settings; each must parse and be non-negative
_NUMERIC_SETTINGS = (
    "max_message_length",
    "paste_timeout",
    "connect_timeout",
    "delivery_timeout",
    "max_per_minute",
    "default_port",
)


def _load_env_overrides() -> dict[str, str]:
    return {k: os.environ.get(k, "") for k in _ENV_OVERRIDE_KEYS}


class Config:
    """Read-only config accessor. Built once per process and passed to each component."""

    def __init__(self, data: dict[str, Any] | None = None, *, validate: bool = True) -> None:
        self._data: dict[str, Any] = copy.deepcopy(data or {})
        self._env: dict[str, str] = _load_env_overrides()
        if validate:
            self._validate()
        logger.debug(
            "Config ready: {} shortcuts, {} webhook templates",
            len(self.shortcuts),
            len(self.webhook_templates),
        )

    def _validate(self) -> None:
        """Validate config structure; raise RelayConfigurationError on failure."""
        shortcuts = self._data.get("shortcuts")
        if shortcuts is not None and not isinstance(shortcuts, dict):
            raise RelayConfigurationError(
                "shortcuts must be a mapping",
                code="invalid_shortcuts",
                details={"type": type(shortcuts).__name__},
            )
        for token, item in (shortcuts or {}).items():
            if not isinstance(item, dict) or not item.get("server") or not item.get("channel"):
                raise RelayConfigurationError(
                    f"shortcuts.{token} needs a server and a channel",
                    code="invalid_shortcut",
                    details={"token": token},
                )
        if self.default_shortcut not in self.shortcuts:
            raise RelayConfigurationError(
                f"default_shortcut {self.default_shortcut!r} is not a configured shortcut",
                code="missing_default_shortcut",
                details={"token": self.default_shortcut},
            )
        templates = self._data.get("webhook_templates")
        if templates is not None and not isinstance(templates, list):
            raise RelayConfigurationError(
                "webhook_templates must be a list",
                code="invalid_webhook_templates",
                details={"type": type(templates).__name__},
            )
        # Parsing checks each template's placeholder count
        _ = self.webhook_templates
        for name in _NUMERIC_SETTINGS:
            try:
                value = getattr(self, name)
            except (TypeError, ValueError) as exc:
                raise RelayConfigurationError(
                    f"{name} must be a number",
                    code=f"invalid_{name}",
                    details={"key": name},
                    original_error=exc,
                ) from exc
            if value < 0:
                raise RelayConfigurationError(
                    f"{name} must not be negative",
                    code=f"invalid_{name}",
                    details={"value": value},
                )

    @property
    def raw(self) -> dict[str, Any]:
        """Copy of the raw config dict."""
        return copy.deepcopy(self._data)

    def get(self, key: str, default: Any = None) -> Any:
        """Get value by dot-separated path."""
        parts = key.split(".")
        obj: Any = self._data
        for part in parts:
            if isinstance(obj, dict) and part in obj:
                obj = obj[part]
            else:
                return default
        return copy.deepcopy(obj)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    @property
    def site_name(self) -> str:
        return str(self._data.get("site_name", constants.SITE_NAME))

    @property
    def nick(self) -> str:
        """Default IRC nickname; requests may override it."""
        return str(self._data.get("nick", self.site_name))

    @property
    def index_path(self) -> str:
        return str(self._data.get("index_path", constants.INDEX_HTML))

    @property
    def max_message_length(self) -> int:
        return int(self._data.get("max_message_length", constants.MAX_MESSAGE_LENGTH))

    @property
    def paste_url(self) -> str:
        return str(self._data.get("paste_url", constants.PASTE_URL))

    @property
    def paste_field(self) -> str:
        return str(self._data.get("paste_field", constants.PASTE_FIELD))

    @property
    def paste_timeout(self) -> float:
        return float(self._data.get("paste_timeout", constants.PASTE_TIMEOUT))

    @property
    def connect_timeout(self) -> float:
        return float(self._data.get("connect_timeout", constants.CONNECT_TIMEOUT))

    @property
    def delivery_timeout(self) -> float:
        env_val = self._env.get("RELAY_DELIVERY_TIMEOUT", "")
        if env_val.strip():
            return float(env_val)
        return float(self._data.get("delivery_timeout", constants.DELIVERY_TIMEOUT))

    @property
    def max_per_minute(self) -> int:
        """Requests per client address per minute. 0 disables rate limiting."""
        env_val = self._env.get("RELAY_MAX_PER_MINUTE", "")
        if env_val.strip():
            return int(env_val)
        return int(self._data.get("max_per_minute", constants.MAX_PER_MINUTE))

    @property
    def redis_url(self) -> str:
        env_val = self._env.get("RELAY_REDIS_URL", "")
        if env_val.strip():
            return env_val.strip()
        return str(self._data.get("redis_url", constants.REDIS_URL))

    @property
    def rate_limit_key_prefix(self) -> str:
        return str(self._data.get("rate_limit_key_prefix", constants.RATE_LIMIT_KEY_PREFIX))

    @property
    def default_port(self) -> int:
        return int(self._data.get("default_port", constants.DEFAULT_IRC_PORT))

    @property
    def shortcuts(self) -> dict[str, tuple[str, str]]:
        """Shortcut token -> (server, channel)."""
        val = self._data.get("shortcuts")
        if not isinstance(val, dict):
            return dict(constants.DEFAULT_SHORTCUTS)
        return {
            str(token): (str(item["server"]), str(item["channel"]))
            for token, item in val.items()
            if isinstance(item, dict) and item.get("server") and item.get("channel")
        }

    @property
    def default_shortcut(self) -> str:
        return str(self._data.get("default_shortcut", constants.DEFAULT_SHORTCUT))

    @property
    def webhook_templates(self) -> list[WebhookTemplate]:
        val = self._data.get("webhook_templates")
        raw = val if isinstance(val, list) else constants.DEFAULT_WEBHOOK_TEMPLATES
        templates: list[WebhookTemplate] = []
        for i, item in enumerate(raw):
            if not isinstance(item, dict):
                raise RelayConfigurationError(
                    f"webhook_templates[{i}] must be a mapping",
                    code="invalid_webhook_template",
                    details={"index": i},
                )
            try:
                templates.append(WebhookTemplate.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                raise RelayConfigurationError(
                    f"webhook_templates[{i}] is invalid: {exc}",
                    code="invalid_webhook_template",
                    details={"index": i},
                    original_error=exc,
                ) from exc
        return templates
