"""Read the YAML config file and ``.env``. Both yield plain data; Config validates it."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from loguru import logger


def load_config(path: str | Path) -> dict[str, Any]:
    """Parse the YAML config at path.

    A missing or empty file, or a document that is not a mapping, gives ``{}``
    so every default applies. A syntax error is logged and re-raised.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning("No config file at {}, using defaults", path)
        return {}
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        logger.error("Cannot parse config {}: {}", path, exc)
        raise
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Config {} holds a {}, not a mapping; using defaults", path, type(data).__name__)
        return {}
    return data


def load_config_with_env(path: str | Path) -> dict[str, Any]:
    """Load ``.env`` into the environment, then the config at path.

    The working directory's ``.env`` is read first, then one beside the config
    file. Variables already set are never replaced.
    """
    path = Path(path)
    load_dotenv(find_dotenv(usecwd=True))
    load_dotenv(path.parent / ".env")
    return load_config(path)
