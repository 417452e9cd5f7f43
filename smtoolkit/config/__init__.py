"""Configuration management for smtoolkit."""

from smtoolkit.config.parser import ConfigError, SetupConfig, load_config, parse_bool

__all__ = ["ConfigError", "SetupConfig", "load_config", "parse_bool"]
