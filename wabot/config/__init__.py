"""Configuration module for WaBot."""

from wabot.config.loader import load_config, save_config, get_config_path
from wabot.config.schema import Config

__all__ = ["Config", "load_config", "save_config", "get_config_path"]
