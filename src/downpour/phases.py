import asyncio
import math
import logging
from typing import Protocol

from .config import LoadConfig, StressConfig
from .metrics import build_load_report, build_wave_summary
from .models import (
    LoadReport,
    MetricsCallback,
    PhaseState,
    ProbeOutcome,
    ProgressCallback,
    ProgressEvent,
    StressReport,
    WaveSummary,
)
from .utils import GracefulKiller, now

logger = logging.getLogger(__name__)


class Probe(Protocol):
    async def probe(self) -> ProbeOutcome: ...


async def launch_wave(probe: Probe, size: int) -> list[ProbeOutcome]:
    """Fire ``size`` probes at once and return once every one has settled."""
    return list(await asyncio.gather(*(probe.probe() for _ in range(size))))


class _PhaseRunner:
    phase = ""

    def __init__(
        self,
        probe: Probe,
        progress_callback: ProgressCallback | None = None,
        killer: GracefulKiller | None = None,
    ) -> None:
        self.probe = probe
        self.progress_callback = progress_callback
        self.killer = killer or GracefulKiller()
        self.state = PhaseState.IDLE

    def _emit(self, event: ProgressEvent) -> None:
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(event)
        except Exception as e:
            logger.error(f"Progress listener failed on {self.phase} step {event.step}: {e!r}")

    @property
    def stop_requested(self) -> bool:
        return self.killer.kill_now


class LoadPhaseRunner(_PhaseRunner):
    """Sends a burst of ``requests_per_second`` probes at every second tick."""

    phase = "load"

    def __init__(
        self,
        probe: Probe,
        config: LoadConfig,
        progress_callback: ProgressCallback | None = None,
        killer: GracefulKiller | None = None,
        metrics_callback: MetricsCallback | None = None,
        target_route: str = "",
    ) -> None:
        super().__init__(probe, progress_callback, killer)
        self.config = config
        self.metrics_callback = metrics_callback
        self.target_route = target_route

    async def run(self) -> LoadReport:
        duration = self.config.duration_seconds
        rps = self.config.requests_per_second
        logger.info(f"[LOAD] Starting load test ({duration}s, {rps} RPS)")

        self.state = PhaseState.RUNNING
        outcomes: list[ProbeOutcome] = []
        failed = 0
        tick = 0
        start = now()

        while True:
            if self.stop_requested:
                self.state = PhaseState.CANCELLED
                logger.info(f"[LOAD] Cancelled after {len(outcomes) // rps} batches")
                break

            batch = await launch_wave(self.probe, rps)
            outcomes.extend(batch)
            batch_failed = sum(1 for o in batch if not o.succeeded)
            failed += batch_failed
            self._emit(
                ProgressEvent(
                    phase=self.phase,
                    step=tick,
                    level=rps,
                    completed=len(outcomes),
                    failed=failed,
                    error_rate=round(batch_failed / len(batch) * 100, 2),
                )
            )
            logger.debug(f"[LOAD] second {tick}: {len(batch)} sent, {batch_failed} failed")

            # next whole-second boundary; boundaries missed by a slow batch are skipped
            tick = max(tick + 1, math.ceil(now() - start))
            await asyncio.sleep(max(0.0, start + min(tick, duration) - now()))
            if tick >= duration:
                self.state = PhaseState.COMPLETED
                break

        return build_load_report(
            outcomes,
            now() - start,
            target_route=self.target_route,
            cancelled=self.state is PhaseState.CANCELLED,
            metrics_callback=self.metrics_callback,
        )


class StressPhaseRunner(_PhaseRunner):
    """Raises concurrency wave by wave until the error rate breaks or max load is hit."""

    phase = "stress"

    def __init__(
        self,
        probe: Probe,
        config: StressConfig,
        progress_callback: ProgressCallback | None = None,
        killer: GracefulKiller | None = None,
        target_route: str = "",
    ) -> None:
        super().__init__(probe, progress_callback, killer)
        self.config = config
        self.target_route = target_route

    async def run(self) -> StressReport:
        cfg = self.config
        logger.info(
            f"[STRESS] Starting stress test (max load: {cfg.max_load}, "
            f"increment: {cfg.increment}, threshold: {cfg.error_threshold}%)"
        )

        self.state = PhaseState.ESCALATING
        waves: list[WaveSummary] = []
        completed = failed = 0
        level = cfg.increment
        start = now()

        while True:
            if level > cfg.max_load:
                self.state = PhaseState.MAX_LOAD_EXHAUSTED
                logger.info(f"[STRESS] System sustained the full sweep ({len(waves)} waves)")
                break
            if self.stop_requested:
                self.state = PhaseState.CANCELLED
                logger.info(f"[STRESS] Cancelled after {len(waves)} waves")
                break

            logger.info(f"[STRESS] Wave {len(waves) + 1}: {level} concurrent requests")
            wave = build_wave_summary(level, await launch_wave(self.probe, level))
            waves.append(wave)
            completed += wave.successful + wave.failed
            failed += wave.failed
            self._emit(
                ProgressEvent(
                    phase=self.phase,
                    step=len(waves) - 1,
                    level=level,
                    completed=completed,
                    failed=failed,
                    error_rate=wave.error_rate,
                )
            )

            if wave.error_rate > cfg.error_threshold:
                logger.warning(
                    f"[STRESS] High error rate ({wave.error_rate_label}) at {level} "
                    f"concurrent requests. Stopping."
                )
                self.state = PhaseState.LIMIT_REACHED
                break

            level += cfg.increment

        return StressReport(
            waves=tuple(waves),
            max_concurrency_reached=waves[-1].concurrency_level if waves else 0,
            breaking_point_hit=self.state is PhaseState.LIMIT_REACHED,
            duration_seconds=round(now() - start, 2),
            target_route=self.target_route,
            terminal_state=self.state,
            cancelled=self.state is PhaseState.CANCELLED,
        )
