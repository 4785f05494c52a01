import math
import logging
from collections.abc import Iterable
from dataclasses import asdict
from .models import (
    LoadReport,
    MetricsCallback,
    OutcomeSummary,
    ProbeOutcome,
    WaveSummary,
)

logger = logging.getLogger(__name__)


def _finite(x: float) -> float:
    return x if math.isfinite(x) else 0.0


def percentile(sorted_latencies: list[float], p: float) -> float:
    """Nearest-rank style percentile: ``sorted[floor(p * n)]``, 0 when empty."""
    n = len(sorted_latencies)
    if n == 0:
        return 0.0
    return sorted_latencies[max(0, min(n - 1, int(math.floor(p * n))))]


def compute_summary(
    outcomes: Iterable[ProbeOutcome],
    elapsed_seconds: float,
    metrics_callback: MetricsCallback | None = None,
) -> OutcomeSummary:
    outcomes = list(outcomes)
    total = len(outcomes)
    latencies = [o.latency_ms for o in outcomes if o.succeeded]
    success_count = len(latencies)
    error_count = total - success_count
    logger.debug(
        f"Computing summary: total={total}, success={success_count}, errors={error_count}"
    )

    error_rate = round(error_count / total * 100, 2) if total else 0.0
    rps = round(total / elapsed_seconds, 2) if total and elapsed_seconds > 0 else 0.0

    if success_count:
        sl = sorted(latencies)
        mean = sum(sl) / success_count
        lo, hi = sl[0], sl[-1]
        p95, p99 = percentile(sl, 0.95), percentile(sl, 0.99)
    else:
        mean = lo = hi = p95 = p99 = 0.0
        if total:
            logger.warning("No successful latencies recorded.")

    summary = OutcomeSummary(
        total=total,
        successful=success_count,
        failed=error_count,
        error_rate=_finite(error_rate),
        avg_latency=round(_finite(mean), 2),
        min_latency=round(_finite(lo), 2),
        max_latency=round(_finite(hi), 2),
        p95=round(_finite(p95), 2),
        p99=round(_finite(p99), 2),
        requests_per_second=_finite(rps),
        elapsed_seconds=round(max(0.0, elapsed_seconds), 2),
    )

    if metrics_callback:
        metrics_callback(asdict(summary))

    return summary


def build_load_report(
    outcomes: Iterable[ProbeOutcome],
    elapsed_seconds: float,
    target_route: str = "",
    cancelled: bool = False,
    metrics_callback: MetricsCallback | None = None,
) -> LoadReport:
    s = compute_summary(outcomes, elapsed_seconds, metrics_callback)
    logger.info(
        f"Load summary: total={s.total}, success={s.successful}, errors={s.failed}, "
        f"avg={s.avg_latency:.2f}ms, p95={s.p95:.2f}ms, error_rate={s.error_rate_label}"
    )
    return LoadReport(
        total_requests=s.total,
        successful_requests=s.successful,
        failed_requests=s.failed,
        error_rate=s.error_rate,
        avg_latency=s.avg_latency,
        min_latency=s.min_latency,
        max_latency=s.max_latency,
        p95=s.p95,
        p99=s.p99,
        requests_per_second=s.requests_per_second,
        duration_seconds=s.elapsed_seconds,
        target_route=target_route,
        cancelled=cancelled,
    )


def build_wave_summary(
    concurrency_level: int, outcomes: Iterable[ProbeOutcome]
) -> WaveSummary:
    s = compute_summary(outcomes, 0.0)
    return WaveSummary(
        concurrency_level=concurrency_level,
        successful=s.successful,
        failed=s.failed,
        error_rate=s.error_rate,
        avg_latency=s.avg_latency,
        max_latency=s.max_latency,
        min_latency=s.min_latency,
    )
