"""Configuration module for replyclaw."""

from replyclaw.config.loader import get_config_path, load_config
from replyclaw.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
