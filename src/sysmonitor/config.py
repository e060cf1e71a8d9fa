"""Runtime settings for sysmonitor."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

ENV_PREFIX = "SYSMONITOR_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(slots=True, frozen=True)
class Settings:
    """Settings for the push channel, terminal dashboard and logging."""

    host: str = "0.0.0.0"
    port: int = 8080
    endpoint: str = "/system-monitor"
    send_timeout: float = 0.5  # Seconds a broadcast waits for pending writes
    log_level: str = "INFO"
    log_file: str | None = None
    terminal: bool = True
    server: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build Settings from SYSMONITOR_* environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: A variable holds a value of the wrong type.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value is not None else None

        return cls(
            host=get("HOST") or defaults.host,
            port=_parse_port(get("PORT"), defaults.port),
            endpoint=_parse_endpoint(get("ENDPOINT"), defaults.endpoint),
            send_timeout=_parse_float("SEND_TIMEOUT", get("SEND_TIMEOUT"), defaults.send_timeout),
            log_level=_parse_log_level(get("LOG_LEVEL"), defaults.log_level),
            log_file=get("LOG_FILE") or defaults.log_file,
            terminal=_parse_bool("TERMINAL", get("TERMINAL"), defaults.terminal),
            server=_parse_bool("SERVER", get("SERVER"), defaults.server),
        )


def _parse_port(value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        port = int(value)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}PORT must be an integer, got {value!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"{ENV_PREFIX}PORT out of range: {port}")
    return port


def _parse_endpoint(value: str | None, default: str) -> str:
    if not value:
        return default
    if not value.startswith("/"):
        raise ValueError(f"{ENV_PREFIX}ENDPOINT must start with '/', got {value!r}")
    return value


def _parse_float(name: str, value: str | None, default: float) -> float:
    if not value:
        return default
    try:
        number = float(value)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from None
    if number <= 0:
        raise ValueError(f"{ENV_PREFIX}{name} must be positive, got {number}")
    return number


def _parse_log_level(value: str | None, default: str) -> str:
    if not value:
        return default
    level = value.upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"{ENV_PREFIX}LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
    return level


def _parse_bool(name: str, value: str | None, default: bool) -> bool:
    if not value:
        return default
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{ENV_PREFIX}{name} must be a boolean, got {value!r}")
