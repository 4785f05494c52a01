import json
import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from dotenv import load_dotenv

from .errors import ConfigurationError
from .probe import DEFAULT_PROBE_TIMEOUT_S

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3001"
DEFAULT_ERROR_THRESHOLD = 30.0


def validate_base_url(url: str) -> str:
    if not isinstance(url, str) or not url.strip():
        raise ConfigurationError("base URL must be a non-empty string")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ConfigurationError(f"base URL must use http or https: {url!r}")
    if not parsed.hostname:
        raise ConfigurationError(f"base URL has no host: {url!r}")
    try:
        parsed.port
    except ValueError as e:
        raise ConfigurationError(f"base URL has an invalid port: {url!r}") from e
    return url.rstrip("/")


def validate_timeout(timeout_s: float) -> float:
    if not timeout_s or timeout_s <= 0:
        raise ConfigurationError(f"probe timeout must be positive, got {timeout_s}")
    return float(timeout_s)


@dataclass
class LoadConfig:
    duration_seconds: float = 10.0
    requests_per_second: int = 10

    def __post_init__(self) -> None:
        if self.duration_seconds is None or self.duration_seconds <= 0:
            raise ConfigurationError(
                f"duration_seconds must be positive, got {self.duration_seconds}"
            )
        if not isinstance(self.requests_per_second, int) or self.requests_per_second < 1:
            raise ConfigurationError(
                f"requests_per_second must be an integer >= 1, got {self.requests_per_second}"
            )


@dataclass
class StressConfig:
    max_load: int = 100
    increment: int = 10
    error_threshold: float = DEFAULT_ERROR_THRESHOLD

    def __post_init__(self) -> None:
        if not isinstance(self.max_load, int) or self.max_load < 1:
            raise ConfigurationError(f"max_load must be an integer >= 1, got {self.max_load}")
        if not isinstance(self.increment, int) or self.increment < 1:
            raise ConfigurationError(f"increment must be an integer >= 1, got {self.increment}")
        if not 0 <= self.error_threshold <= 100:
            raise ConfigurationError(
                f"error_threshold must be a percentage in [0, 100], got {self.error_threshold}"
            )


@dataclass
class EngineSettings:
    """Environment-level settings shared by the CLI and the job API."""

    base_url: str = DEFAULT_BASE_URL
    candidate_routes: list[str] = field(default_factory=list)
    probe_timeout_s: float = DEFAULT_PROBE_TIMEOUT_S
    error_threshold: float = DEFAULT_ERROR_THRESHOLD

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "EngineSettings":
        if env is None:
            load_dotenv()
            env = dict(os.environ)

        routes: list[str] = []
        raw_routes = env.get("DETECTED_ROUTES")
        if raw_routes:
            try:
                routes = json.loads(raw_routes)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"DETECTED_ROUTES is not valid JSON: {e}") from e
            if not isinstance(routes, list) or not all(isinstance(r, str) for r in routes):
                raise ConfigurationError("DETECTED_ROUTES must be a JSON array of strings")

        try:
            timeout_s = float(env.get("DOWNPOUR_PROBE_TIMEOUT_S", DEFAULT_PROBE_TIMEOUT_S))
            threshold = float(env.get("DOWNPOUR_ERROR_THRESHOLD", DEFAULT_ERROR_THRESHOLD))
        except ValueError as e:
            raise ConfigurationError(f"invalid numeric setting: {e}") from e

        settings = cls(
            base_url=validate_base_url(env.get("BASE_URL", DEFAULT_BASE_URL)),
            candidate_routes=routes,
            probe_timeout_s=validate_timeout(timeout_s),
            error_threshold=threshold,
        )
        logger.debug(
            f"Settings loaded: base_url={settings.base_url}, "
            f"routes={len(settings.candidate_routes)}, timeout={settings.probe_timeout_s}s"
        )
        return settings
