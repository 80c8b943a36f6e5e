"""Configuration loading for multidialer.

Values are resolved in four layers, later layers winning:

1. built-in defaults,
2. an optional YAML file (``-c`` or ``$MULTIDIALER_CONFIG``),
3. ``MULTIDIALER_*`` environment variables,
4. command-line flags.

The YAML file holds two mappings::

    manager:
      host: 127.0.0.1
      port: 5038
      username: dialer
      password: secret
      manager_conf: /etc/asterisk/manager.conf
    lines:
      technology: PJSIP
      peer_prefix: autotest
      plar_code: "01"
      context: idle
      extension: "9999"
      priority: 1
      hangup_cause: 16

Any malformed or unknown value raises
:class:`~multidialer.exceptions.ConfigurationError`.
"""

from __future__ import annotations

import ipaddress
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import structlog
import yaml

from multidialer.core.models import LinePlan
from multidialer.exceptions import ConfigurationError
from multidialer.infra.manager_conf import DEFAULT_MANAGER_CONF

logger = structlog.get_logger(__name__)

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 5038
CONFIG_ENV_VAR: str = "MULTIDIALER_CONFIG"

_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "MULTIDIALER_HOST": ("manager", "host"),
    "MULTIDIALER_PORT": ("manager", "port"),
    "MULTIDIALER_USERNAME": ("manager", "username"),
    "MULTIDIALER_PASSWORD": ("manager", "password"),
    "MULTIDIALER_MANAGER_CONF": ("manager", "manager_conf"),
    "MULTIDIALER_TECHNOLOGY": ("lines", "technology"),
    "MULTIDIALER_PEER_PREFIX": ("lines", "peer_prefix"),
    "MULTIDIALER_PLAR_CODE": ("lines", "plar_code"),
    "MULTIDIALER_CONTEXT": ("lines", "context"),
    "MULTIDIALER_EXTENSION": ("lines", "extension"),
}


# ---------------------------------------------------------------------------
# Typed configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ManagerConfig:
    """Where and as whom to reach the manager interface."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    username: str | None = None
    password: str | None = None
    manager_conf: Path = DEFAULT_MANAGER_CONF

    @property
    def is_loopback(self) -> bool:
        """True when *host* names this machine."""
        if self.host == "localhost":
            return True
        try:
            return ipaddress.ip_address(self.host).is_loopback
        except ValueError:
            return False


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Fully resolved configuration for one run."""

    manager: ManagerConfig = field(default_factory=ManagerConfig)
    plan: LinePlan = field(default_factory=LinePlan)
    debug_level: int = 0


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_config(
    path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    debug_level: int = 0,
) -> AppConfig:
    """Resolve the configuration for this run.

    Parameters
    ----------
    path:
        YAML file to read.  Falls back to ``$MULTIDIALER_CONFIG``; with
        neither, only defaults, environment and *overrides* apply.
    environ:
        Environment to read overrides from (default ``os.environ``).
    overrides:
        ``manager`` keys given on the command line.  ``None`` values are
        ignored so unset flags never mask lower layers.
    debug_level:
        Number of ``-d`` flags, carried through unchanged.
    """
    env = os.environ if environ is None else environ
    if path is None:
        path = env.get(CONFIG_ENV_VAR) or None

    raw: dict[str, dict[str, Any]] = {"manager": {}, "lines": {}}
    if path is not None:
        _merge(raw, _read_yaml(Path(path)))

    for env_var, (section, key) in _ENV_OVERRIDES.items():
        if env_var in env:
            raw[section][key] = env[env_var]
            logger.debug("config_env_override", variable=env_var)

    for key, value in (overrides or {}).items():
        if value is not None:
            raw["manager"][key] = value

    _reject_unknown(raw)
    return AppConfig(
        manager=_build_manager(raw["manager"]),
        plan=_build_plan(raw["lines"]),
        debug_level=debug_level,
    )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(
            f"Failed to read configuration file {path}: {exc.strerror or exc}",
        ) from exc
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    logger.info("config_loaded", path=str(path))
    return document


def _merge(raw: dict[str, dict[str, Any]], document: Mapping[str, Any]) -> None:
    for section, values in document.items():
        if section not in raw:
            raise ConfigurationError(
                f"Unknown configuration section '{section}'",
                hint="Valid sections are: manager, lines.",
            )
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigurationError(f"Configuration section '{section}' must be a mapping")
        raw[section].update(values)


def _reject_unknown(raw: Mapping[str, Mapping[str, Any]]) -> None:
    known = {
        "manager": {f.name for f in fields(ManagerConfig)},
        "lines": {f.name for f in fields(LinePlan)},
    }
    for section, values in raw.items():
        unknown = sorted(set(values) - known[section])
        if unknown:
            raise ConfigurationError(
                f"Unknown key(s) in '{section}': {', '.join(unknown)}",
                hint=f"Valid keys are: {', '.join(sorted(known[section]))}.",
            )


def _build_manager(values: Mapping[str, Any]) -> ManagerConfig:
    defaults = ManagerConfig()
    port = _as_int("manager.port", values.get("port", defaults.port))
    if not 0 < port < 65536:
        raise ConfigurationError(f"manager.port must be between 1 and 65535, got {port}")
    manager_conf = values.get("manager_conf", defaults.manager_conf)
    return ManagerConfig(
        host=_as_str("manager.host", values.get("host", defaults.host)),
        port=port,
        username=_as_optional_str("manager.username", values.get("username")),
        password=_as_optional_str("manager.password", values.get("password")),
        manager_conf=Path(_as_str("manager.manager_conf", str(manager_conf))),
    )


def _build_plan(values: Mapping[str, Any]) -> LinePlan:
    defaults = LinePlan()
    return LinePlan(
        technology=_as_str("lines.technology", values.get("technology", defaults.technology)),
        peer_prefix=_as_str("lines.peer_prefix", values.get("peer_prefix", defaults.peer_prefix)),
        plar_code=_as_str("lines.plar_code", values.get("plar_code", defaults.plar_code)),
        context=_as_str("lines.context", values.get("context", defaults.context)),
        extension=_as_str("lines.extension", values.get("extension", defaults.extension)),
        priority=_as_int("lines.priority", values.get("priority", defaults.priority)),
        hangup_cause=_as_int(
            "lines.hangup_cause", values.get("hangup_cause", defaults.hangup_cause),
        ),
    )


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


def _as_str(name: str, value: Any) -> str:
    # Dial codes such as "01" lose their leading zero if YAML reads them
    # as numbers, so only real strings are accepted.
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(
            f"{name} must be a non-empty string, got {value!r}",
            hint="Quote numeric-looking values in YAML, e.g. plar_code: \"01\".",
        )
    return value.strip()


def _as_optional_str(name: str, value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"{name} must be a string, got {value!r}")
    return value
