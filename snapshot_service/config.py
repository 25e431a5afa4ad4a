"""
Process configuration read from the environment.
"""
import logging
import os
from typing import Mapping, Optional, Tuple

DEFAULT_PORT = 3001
DEFAULT_HOST = "0.0.0.0"
DEFAULT_LAUNCH_TIMEOUT = 30.0


class Settings:
    """
    Immutable service settings, built once at startup.

    Args:
        allowed_origins: CORS origins; ("*",) allows any origin
        executable_path: Chromium binary override
        host: Listen address
        port: Listen port
        log_level: Logging level number
        launch_timeout: Seconds to wait for the browser's DevTools endpoint
    """

    __slots__ = ("_allowed_origins", "_executable_path", "_host", "_port", "_log_level", "_launch_timeout")

    def __init__(
        self,
        allowed_origins: Tuple[str, ...] = ("*",),
        executable_path: Optional[str] = None,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        log_level: int = logging.INFO,
        launch_timeout: float = DEFAULT_LAUNCH_TIMEOUT,
    ):
        self._allowed_origins = tuple(allowed_origins) or ("*",)
        self._executable_path = executable_path or None
        self._host = host
        self._port = port
        self._log_level = log_level
        self._launch_timeout = launch_timeout

    @property
    def allowed_origins(self) -> Tuple[str, ...]:
        return self._allowed_origins

    @property
    def executable_path(self) -> Optional[str]:
        return self._executable_path

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def log_level(self) -> int:
        return self._log_level

    @property
    def launch_timeout(self) -> float:
        return self._launch_timeout

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read, defaults to os.environ

        Returns:
            Settings instance

        Raises:
            ValueError: If a numeric or level variable is malformed
        """
        env = os.environ if environ is None else environ

        origins = tuple(
            origin.strip()
            for origin in env.get("ALLOWED_ORIGIN", "*").split(",")
            if origin.strip()
        )

        level_name = env.get("LOG_LEVEL", "INFO").upper()
        log_level = logging.getLevelName(level_name)
        if not isinstance(log_level, int):
            raise ValueError(f"Invalid LOG_LEVEL: {level_name}")

        return cls(
            allowed_origins=origins,
            executable_path=env.get("PUPPETEER_EXECUTABLE_PATH"),
            host=env.get("HOST", DEFAULT_HOST),
            port=_parse_number(env, "PORT", DEFAULT_PORT, int),
            log_level=log_level,
            launch_timeout=_parse_number(env, "BROWSER_LAUNCH_TIMEOUT", DEFAULT_LAUNCH_TIMEOUT, float),
        )

    def with_overrides(self, host: Optional[str] = None, port: Optional[int] = None,
                       log_level: Optional[int] = None) -> "Settings":
        """Return a copy with command line overrides applied."""
        return Settings(
            allowed_origins=self._allowed_origins,
            executable_path=self._executable_path,
            host=host or self._host,
            port=port or self._port,
            log_level=log_level if log_level is not None else self._log_level,
            launch_timeout=self._launch_timeout,
        )

    def __repr__(self) -> str:
        return (
            f"Settings(allowed_origins={self._allowed_origins!r}, host={self._host!r}, "
            f"port={self._port}, executable_path={self._executable_path!r})"
        )


def _parse_number(env: Mapping[str, str], name: str, default, kind):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = kind(raw)
    except ValueError:
        raise ValueError(f"Invalid {name}: {raw!r}")
    if value <= 0:
        raise ValueError(f"Invalid {name}: {raw!r}")
    return value
