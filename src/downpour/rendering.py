from typing import Sequence

from .models import LoadReport, StressReport, WaveSummary


def render_load_report(report: LoadReport) -> str:
    if not report.total_requests:
        return "No load data."
    lines = [
        f"Load Test  {report.target_route}",
        f"  requests    {report.total_requests} "
        f"({report.successful_requests} ok / {report.failed_requests} failed)",
        f"  error rate  {report.error_rate_label}",
        f"  latency     avg {report.avg_latency:.2f}ms | min {report.min_latency:.2f}ms "
        f"| max {report.max_latency:.2f}ms",
        f"  percentiles p95 {report.p95:.2f}ms | p99 {report.p99:.2f}ms",
        f"  throughput  {report.requests_per_second:.2f} req/s over {report.duration_seconds:.2f}s",
    ]
    if report.cancelled:
        lines.append("  (cancelled before the configured duration)")
    return "\n".join(lines)


def render_wave_chart(waves: Sequence[WaveSummary], width: int = 40) -> str:
    """One bar per wave, length proportional to the wave's error rate."""
    if not waves:
        return "No wave data."

    level_w = max(len(str(w.concurrency_level)) for w in waves)
    lines = ["Error Rate by Concurrency"]
    for w in waves:
        bar = "#" * int(w.error_rate / 100 * width)
        lines.append(
            f"{w.concurrency_level:>{level_w}} | {bar:<{width}} "
            f"{w.error_rate_label:>7}  avg {w.avg_latency:.2f}ms"
        )
    return "\n".join(lines)


def render_stress_report(report: StressReport) -> str:
    lines = [f"Stress Test  {report.target_route}", render_wave_chart(report.waves)]
    if report.breaking_point_hit:
        lines.append(f"Breaking point detected at {report.breaking_point} concurrent requests")
    elif report.cancelled:
        lines.append(f"Cancelled at {report.max_concurrency_reached} concurrent requests")
    else:
        lines.append("System sustained the full test load")
    lines.append(
        f"max error rate {report.max_error_rate:.2f}% | "
        f"avg latency {report.average_latency:.2f}ms | {report.duration_seconds:.2f}s"
    )
    return "\n".join(lines)
