"""Core components: configuration and errors."""

from pomolog.core.config import Config, get_config

__all__ = ["Config", "get_config"]
