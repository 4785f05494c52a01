from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Any, Optional
from collections.abc import Callable


class ErrorKind(str, Enum):
    NONE = "none"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    SERVER_ERROR = "server_error"
    OTHER = "other"


class PhaseState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ESCALATING = "escalating"
    LIMIT_REACHED = "limit_reached"
    MAX_LOAD_EXHAUSTED = "max_load_exhausted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ProbeOutcome:
    succeeded: bool
    latency_ms: float
    status_code: Optional[int] = None
    error_kind: ErrorKind = ErrorKind.NONE


@dataclass(frozen=True)
class OutcomeSummary:
    total: int
    successful: int
    failed: int
    error_rate: float  # percent, 2 dp
    avg_latency: float
    min_latency: float
    max_latency: float
    p95: float
    p99: float
    requests_per_second: float
    elapsed_seconds: float

    @property
    def error_rate_label(self) -> str:
        return f"{self.error_rate:.2f}%"


@dataclass(frozen=True)
class LoadReport:
    total_requests: int
    successful_requests: int
    failed_requests: int
    error_rate: float
    avg_latency: float
    min_latency: float
    max_latency: float
    p95: float
    p99: float
    requests_per_second: float
    duration_seconds: float
    target_route: str = ""
    cancelled: bool = False

    @property
    def error_rate_label(self) -> str:
        return f"{self.error_rate:.2f}%"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = "LOAD_TEST"
        data["error_rate_label"] = self.error_rate_label
        return data


@dataclass(frozen=True)
class WaveSummary:
    concurrency_level: int
    successful: int
    failed: int
    error_rate: float
    avg_latency: float
    max_latency: float
    min_latency: float

    @property
    def error_rate_label(self) -> str:
        return f"{self.error_rate:.2f}%"


@dataclass(frozen=True)
class StressReport:
    waves: tuple[WaveSummary, ...] = field(default_factory=tuple)
    max_concurrency_reached: int = 0
    breaking_point_hit: bool = False
    duration_seconds: float = 0.0
    target_route: str = ""
    terminal_state: PhaseState = PhaseState.MAX_LOAD_EXHAUSTED
    cancelled: bool = False

    @property
    def breaking_point(self) -> int | None:
        """Concurrency level of the wave that crossed the error threshold."""
        if not self.breaking_point_hit or not self.waves:
            return None
        return self.waves[-1].concurrency_level

    @property
    def max_error_rate(self) -> float:
        if not self.waves:
            return 0.0
        return max(w.error_rate for w in self.waves)

    @property
    def average_latency(self) -> float:
        if not self.waves:
            return 0.0
        return round(sum(w.avg_latency for w in self.waves) / len(self.waves), 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "STRESS_TEST",
            "waves": [{**asdict(w), "error_rate_label": w.error_rate_label} for w in self.waves],
            "max_concurrency_reached": self.max_concurrency_reached,
            "breaking_point_hit": self.breaking_point_hit,
            "breaking_point": self.breaking_point,
            "duration_seconds": self.duration_seconds,
            "target_route": self.target_route,
            "terminal_state": self.terminal_state.value,
            "cancelled": self.cancelled,
            "max_error_rate": self.max_error_rate,
            "average_latency": self.average_latency,
        }


@dataclass(frozen=True)
class ProgressEvent:
    phase: str  # "load" or "stress"
    step: int  # second index (load) or wave index (stress)
    level: int  # batch size (load) or concurrency level (stress)
    completed: int  # running total of probes settled
    failed: int  # running total of failed probes
    error_rate: float  # of the batch/wave just finished


# Progress callback: receives one event per batch/wave
ProgressCallback = Callable[[ProgressEvent], None]

# Metrics callback: callable accepting summary dict
MetricsCallback = Callable[[dict[str, Any]], None]
