"""Configuration: YAML + env overlay."""

from p2irc.config.loader import load_config, load_config_with_env
from p2irc.config.schema import Config

__all__ = ["Config", "load_config", "load_config_with_env"]
