import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .config import LoadConfig, StressConfig, validate_base_url, validate_timeout
from .models import LoadReport, MetricsCallback, ProgressCallback, StressReport
from .phases import LoadPhaseRunner, StressPhaseRunner
from .probe import DEFAULT_PROBE_TIMEOUT_S, RequestProbe, StatusPolicy, build_session
from .routes import select_target_route
from .utils import GracefulKiller, describe_host


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SuiteResult:
    load: LoadReport
    stress: StressReport | None  # None when cancelled during the load phase


class LoadStressEngine:
    def __init__(
        self,
        base_url: str,
        candidate_routes: Iterable[str] = (),
        probe_timeout_s: float = DEFAULT_PROBE_TIMEOUT_S,
        status_policy: StatusPolicy | None = None,
        progress_callback: ProgressCallback | None = None,
        metrics_callback: MetricsCallback | None = None,
        killer: GracefulKiller | None = None,
    ) -> None:
        self.base_url = validate_base_url(base_url)
        self.probe_timeout_s = validate_timeout(probe_timeout_s)
        self.status_policy = status_policy or StatusPolicy()
        self.progress_callback = progress_callback
        self.metrics_callback = metrics_callback
        self.killer = killer or GracefulKiller()

        # read-only view of the detector's list; chosen once for the engine's lifetime
        candidates: Sequence[str] = tuple(candidate_routes)
        self._target_route = select_target_route(candidates)

        logger.info(
            f"Initialized engine for {describe_host(self.base_url)}, "
            f"target={self._target_route}, candidates={len(candidates)}, "
            f"probe_timeout={self.probe_timeout_s}s"
        )

    @property
    def target_route(self) -> str:
        return self._target_route

    def cancel(self) -> None:
        """Stop after the batch or wave currently in flight."""
        self.killer.request_stop()

    def _probe(self, session) -> RequestProbe:
        return RequestProbe(session, self.base_url, self._target_route, self.status_policy)

    # ────────────────────────────────
    # Phases
    # ────────────────────────────────

    async def run_load(
        self, duration_seconds: float = 10.0, requests_per_second: int = 10
    ) -> LoadReport:
        config = LoadConfig(duration_seconds, requests_per_second)
        self.killer.reset()
        return await self._load_phase(config)

    async def run_stress(
        self, max_load: int = 100, increment: int = 10, error_threshold: float = 30.0
    ) -> StressReport:
        config = StressConfig(max_load, increment, error_threshold)
        self.killer.reset()
        return await self._stress_phase(config)

    async def run_all(
        self,
        load: LoadConfig | None = None,
        stress: StressConfig | None = None,
    ) -> SuiteResult:
        """Load phase then stress phase, both against the same target route."""
        load = load or LoadConfig(duration_seconds=5, requests_per_second=5)
        stress = stress or StressConfig(max_load=50, increment=10)
        self.killer.reset()

        load_report = await self._load_phase(load)
        if self.killer.kill_now:
            return SuiteResult(load=load_report, stress=None)
        stress_report = await self._stress_phase(stress)
        return SuiteResult(load=load_report, stress=stress_report)

    async def _load_phase(self, config: LoadConfig) -> LoadReport:
        async with build_session(self.probe_timeout_s) as session:
            runner = LoadPhaseRunner(
                self._probe(session),
                config,
                progress_callback=self.progress_callback,
                killer=self.killer,
                metrics_callback=self.metrics_callback,
                target_route=self._target_route,
            )
            report = await runner.run()

        logger.info(
            f"Load test finished: {report.total_requests} requests, "
            f"error_rate={report.error_rate_label}, p95={report.p95:.2f}ms, p99={report.p99:.2f}ms"
        )
        return report

    async def _stress_phase(self, config: StressConfig) -> StressReport:
        async with build_session(self.probe_timeout_s) as session:
            runner = StressPhaseRunner(
                self._probe(session),
                config,
                progress_callback=self.progress_callback,
                killer=self.killer,
                target_route=self._target_route,
            )
            report = await runner.run()

        if report.breaking_point_hit:
            logger.warning(f"Breaking point at {report.breaking_point} concurrent requests")
        else:
            logger.info(
                f"Stress test finished without breaking: max concurrency "
                f"{report.max_concurrency_reached}"
            )
        return report
