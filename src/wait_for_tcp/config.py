"""Probe configuration sourced from environment-style lookups."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple

from .durations import DurationError, parse_duration

logger = logging.getLogger("wait-for-tcp")

ENV_TARGET_ADDRESS = "TARGET_ADDRESS"
ENV_TARGET_NAME = "TARGET_NAME"
ENV_INTERVAL = "INTERVAL"
ENV_DIAL_TIMEOUT = "DIAL_TIMEOUT"
ENV_LOG_FIELDS = "LOG_FIELDS"

_TRUE_VALUES = {"1", "t", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "f", "false", "no", "n", "off"}

Lookup = Callable[[str], Optional[str]]


class ConfigError(ValueError):
    """Raised when the probe configuration is missing or malformed."""


@dataclass(frozen=True)
class ConfigDefaults:
    """Fallback values applied when a setting is absent."""

    interval: float = 2.0
    dial_timeout: float = 1.0
    verbose: bool = False


DEFAULTS = ConfigDefaults()


@dataclass(frozen=True)
class ProbeConfig:
    """Validated settings for a single readiness probe."""

    target_address: str
    target_name: str = ""
    interval: float = DEFAULTS.interval
    dial_timeout: float = DEFAULTS.dial_timeout
    verbose: bool = DEFAULTS.verbose


def split_address(address: str) -> Tuple[str, str]:
    """Split ``host:port`` on the last colon, dropping IPv6 brackets."""

    host, _, port = address.rpartition(":")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, port


def _check_address(address: str) -> None:
    if not address:
        raise ConfigError(f"{ENV_TARGET_ADDRESS} environment variable is required")
    scheme, sep, _ = address.partition("://")
    if sep:
        raise ConfigError(f"{ENV_TARGET_ADDRESS} should not include a schema ({scheme})")
    if ":" not in address:
        raise ConfigError(f"invalid {ENV_TARGET_ADDRESS} format, must be host:port")


def derive_target_name(address: str) -> str:
    """Return the host label before the first dot, e.g. ``db`` for ``db.local:5432``."""

    host, _ = split_address(address)
    name = host.split(".", 1)[0]
    return name or address


def _parse_duration_setting(key: str, label: str, raw: str, default: float) -> float:
    if not raw:
        return default
    try:
        value = parse_duration(raw)
    except DurationError as exc:
        raise ConfigError(f"invalid {key} value: {exc}") from exc
    _check_non_negative(key, label, value)
    return value


def _check_non_negative(key: str, label: str, value: float) -> None:
    if value < 0:
        raise ConfigError(f"invalid {key} value: {label} cannot be negative")


def _parse_bool_setting(key: str, raw: str, default: bool) -> bool:
    if not raw:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f'invalid {key} value: "{raw}"')


def load_config(lookup: Lookup, defaults: ConfigDefaults = DEFAULTS) -> ProbeConfig:
    """Build a validated :class:`ProbeConfig` from a name to string lookup.

    Absent settings and empty strings are treated alike and fall back to
    ``defaults``. The first violated rule raises :class:`ConfigError`; address
    rules are checked before the duration and flag settings are parsed.
    """

    def _get(key: str) -> str:
        return lookup(key) or ""

    address = _get(ENV_TARGET_ADDRESS)
    _check_address(address)
    name = _get(ENV_TARGET_NAME) or derive_target_name(address)

    config = ProbeConfig(
        target_address=address,
        target_name=name,
        interval=_parse_duration_setting(ENV_INTERVAL, "interval", _get(ENV_INTERVAL), defaults.interval),
        dial_timeout=_parse_duration_setting(
            ENV_DIAL_TIMEOUT, "dial timeout", _get(ENV_DIAL_TIMEOUT), defaults.dial_timeout
        ),
        verbose=_parse_bool_setting(ENV_LOG_FIELDS, _get(ENV_LOG_FIELDS), defaults.verbose),
    )
    logger.debug("Loaded probe configuration", extra={"fields": {"target_name": config.target_name}})
    return config


def validate_config(config: ProbeConfig) -> ProbeConfig:
    """Re-check an already constructed config; returns an equal config when valid."""

    _check_address(config.target_address)
    _check_non_negative(ENV_INTERVAL, "interval", config.interval)
    _check_non_negative(ENV_DIAL_TIMEOUT, "dial timeout", config.dial_timeout)
    if config.target_name:
        return config
    return replace(config, target_name=derive_target_name(config.target_address))
