"""Configuration source for smtoolkit.

Settings are read from two layers, in increasing priority:

1. An optional YAML file whose keys are the option names (``digicert-cdn``,
   ``cache-version``, ...)
2. GitHub Actions style ``INPUT_<NAME>`` environment variables
   (``INPUT_DIGICERT-CDN`` or ``INPUT_DIGICERT_CDN``)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from smtoolkit.core.exceptions import ConfigError
from smtoolkit.core.retry import RetryPolicy

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "True", "TRUE")
FALSE_VALUES = ("false", "False", "FALSE")

REQUIRED_OPTIONS = ("digicert-cdn", "cache-version")

BOOLEAN_OPTIONS = {
    "use-binary-sha256-checksum": False,
    "use-github-caching-service": False,
    "verify-binary-checksum": False,
    "fail-fast": False,
    "zero-exit-code-on-failure": False,
    "unsigned": False,
    "timestamp": True,
    "bulk-sign-mode": False,
    "simple-signing-mode": False,
}

STRING_OPTIONS = (
    "digicert-cdn",
    "cache-version",
    "digest-alg",
    "remote-cache",
    "remote-cache-token",
    "tool-cache-dir",
    "temp-dir",
)

NUMBER_OPTIONS = {
    "download-timeout": int,
    "retry-max-attempts": int,
    "retry-initial-delay": float,
    "retry-backoff-multiplier": float,
    "retry-max-delay": float,
}

KNOWN_OPTIONS = set(BOOLEAN_OPTIONS) | set(STRING_OPTIONS) | set(NUMBER_OPTIONS)


@dataclass
class SetupConfig:
    """Complete setup configuration."""

    digicert_cdn: str
    cache_version: str
    use_binary_sha256_checksum: bool = False
    use_github_caching_service: bool = False
    verify_binary_checksum: bool = False
    fail_fast: bool = False
    zero_exit_code_on_failure: bool = False
    unsigned: bool = False
    timestamp: bool = True
    digest_alg: Optional[str] = None
    bulk_sign_mode: bool = False
    simple_signing_mode: bool = False
    remote_cache: Optional[str] = None  # directory path or http(s) URL
    remote_cache_token: Optional[str] = field(default=None, repr=False)
    tool_cache_dir: Optional[Path] = None
    temp_dir: Optional[Path] = None
    download_timeout: int = 30
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    @property
    def cdn_base(self) -> str:
        """CDN base URL without a trailing slash."""
        return self.digicert_cdn.rstrip("/")


def parse_bool(name: str, value: Any) -> bool:
    """
    Parse a boolean option.

    Accepts YAML booleans and the strings true/True/TRUE/false/False/FALSE.

    Args:
        name: Option name (used in error messages)
        value: Raw value

    Returns:
        Parsed boolean

    Raises:
        ConfigError: If value is not a recognized boolean
    """
    if isinstance(value, bool):
        return value
    text = str(value).strip()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ConfigError(
        f"Input does not meet YAML 1.2 \"Core Schema\" specification: {name}\n"
        "Support boolean input list: `true | True | TRUE | false | False | FALSE`"
    )


def _parse_number(name: str, value: Any, kind: type) -> Union[int, float]:
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {name}: {value!r}") from None


def _load_yaml_layer(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {config_path}")

    unknown = set(data) - KNOWN_OPTIONS
    for key in sorted(unknown):
        logger.warning(f"Ignoring unknown configuration option: {key}")

    return {key: value for key, value in data.items() if key in KNOWN_OPTIONS}


def _load_env_layer(environ: Mapping[str, str]) -> Dict[str, str]:
    values = {}
    for option in KNOWN_OPTIONS:
        for env_name in (f"INPUT_{option.upper()}", f"INPUT_{option.upper().replace('-', '_')}"):
            value = environ.get(env_name)
            # Unset inputs arrive as empty strings
            if value is not None and value.strip() != "":
                values[option] = value.strip()
                break
    return values


def load_config(
    config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
) -> SetupConfig:
    """
    Load setup configuration from a YAML file and INPUT_* environment variables.

    Args:
        config_path: Optional YAML configuration file
        environ: Environment mapping (default: os.environ)

    Returns:
        Parsed and validated configuration

    Raises:
        ConfigError: If a required option is missing or a value is invalid

    Example:
        >>> config = load_config(environ={
        ...     "INPUT_DIGICERT-CDN": "https://cdn.example/tools",
        ...     "INPUT_CACHE-VERSION": "1.0.0",
        ... })
        >>> config.cache_version
        '1.0.0'
    """
    if environ is None:
        environ = os.environ

    raw: Dict[str, Any] = {}
    if config_path is not None:
        raw.update(_load_yaml_layer(Path(config_path)))
    raw.update(_load_env_layer(environ))

    for option in REQUIRED_OPTIONS:
        if raw.get(option) in (None, ""):
            raise ConfigError(f"Input required and not supplied: {option}")

    values: Dict[str, Any] = {}
    for option in STRING_OPTIONS:
        if raw.get(option) is not None:
            values[option.replace("-", "_")] = str(raw[option])
    for option, default in BOOLEAN_OPTIONS.items():
        values[option.replace("-", "_")] = (
            parse_bool(option, raw[option]) if option in raw else default
        )
    numbers = {
        option: _parse_number(option, raw[option], kind)
        for option, kind in NUMBER_OPTIONS.items()
        if option in raw
    }

    for option in ("tool_cache_dir", "temp_dir"):
        if values.get(option):
            values[option] = Path(values[option])

    if "download-timeout" in numbers:
        if numbers["download-timeout"] <= 0:
            raise ConfigError(
                f"download-timeout must be positive: {numbers['download-timeout']}"
            )
        values["download_timeout"] = numbers["download-timeout"]

    defaults = RetryPolicy()
    try:
        values["retry_policy"] = RetryPolicy(
            max_attempts=numbers.get("retry-max-attempts", defaults.max_attempts),
            initial_delay=numbers.get("retry-initial-delay", defaults.initial_delay),
            backoff_multiplier=numbers.get(
                "retry-backoff-multiplier", defaults.backoff_multiplier
            ),
            max_delay=numbers.get("retry-max-delay", defaults.max_delay),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid retry configuration: {e}") from e

    config = SetupConfig(**values)
    logger.debug(f"Loaded configuration: {config}")
    return config


__all__ = ["SetupConfig", "ConfigError", "load_config", "parse_bool"]
