import math

import pytest

from downpour.metrics import (
    build_load_report,
    build_wave_summary,
    compute_summary,
    percentile,
)
from downpour.models import ErrorKind, ProbeOutcome


def ok(ms: float) -> ProbeOutcome:
    return ProbeOutcome(True, ms, 200)


def fail(kind: ErrorKind = ErrorKind.CONNECTION) -> ProbeOutcome:
    return ProbeOutcome(False, 3.0, None, kind)


def test_empty_outcomes_yield_zeroed_summary():
    s = compute_summary([], 0.0)
    assert s.total == s.successful == s.failed == 0
    assert s.error_rate_label == "0.00%"
    assert s.avg_latency == 0
    assert s.p95 == s.p99 == 0
    assert s.requests_per_second == 0


def test_empty_load_report_is_well_formed():
    report = build_load_report([], 0.0)
    assert report.total_requests == 0
    assert report.error_rate_label == "0.00%"
    assert report.p95 == report.p99 == report.avg_latency == 0
    assert report.to_dict()["type"] == "LOAD_TEST"


def test_all_failed_is_a_valid_result():
    s = compute_summary([fail(), fail(ErrorKind.TIMEOUT), fail(ErrorKind.SERVER_ERROR)], 1.5)
    assert s.failed == 3
    assert s.successful == 0
    assert s.error_rate == 100.0
    assert s.avg_latency == s.min_latency == s.max_latency == 0
    assert s.p95 == s.p99 == 0
    assert s.requests_per_second == 2.0


@pytest.mark.parametrize(
    "outcomes",
    [
        [ok(10)],
        [ok(10), fail()],
        [fail()] * 7 + [ok(1), ok(2)],
        [ok(float(i)) for i in range(1, 51)],
    ],
)
def test_counts_add_up(outcomes):
    s = compute_summary(outcomes, 1.0)
    assert s.successful + s.failed == s.total == len(outcomes)
    assert all(math.isfinite(v) for v in (s.error_rate, s.avg_latency, s.p95, s.p99))


def test_error_rate_is_rounded_percentage():
    s = compute_summary([ok(1), ok(1), fail()], 1.0)
    assert s.error_rate == 33.33
    assert s.error_rate_label == "33.33%"


def test_latency_stats_ignore_failed_probes():
    s = compute_summary([ok(10), ok(30), ProbeOutcome(False, 5000.0, None, ErrorKind.TIMEOUT)], 1.0)
    assert s.avg_latency == 20.0
    assert s.min_latency == 10.0
    assert s.max_latency == 30.0


def test_percentiles_use_floor_index_over_sorted_latencies():
    latencies = [float(i) for i in range(1, 101)]
    s = compute_summary([ok(x) for x in reversed(latencies)], 1.0)
    # floor(0.95 * 100) = 95 -> 96, floor(0.99 * 100) = 99 -> 100
    assert s.p95 == 96.0
    assert s.p99 == 100.0


def test_percentile_small_samples():
    assert percentile([], 0.95) == 0.0
    assert percentile([7.0], 0.99) == 7.0
    assert percentile([1.0, 2.0, 3.0], 0.95) == 3.0


@pytest.mark.parametrize("n", [1, 2, 5, 19, 20, 21, 99, 250])
def test_p99_never_below_p95(n):
    s = compute_summary([ok(float((i * 37) % 101)) for i in range(n)], 1.0)
    assert s.p99 >= s.p95


def test_order_of_outcomes_does_not_matter():
    outcomes = [ok(5), fail(), ok(50), ok(1), fail(), ok(20)]
    assert compute_summary(outcomes, 2.0) == compute_summary(list(reversed(outcomes)), 2.0)


def test_requests_per_second_uses_all_requests():
    s = compute_summary([ok(1)] * 8 + [fail()] * 2, 2.0)
    assert s.requests_per_second == 5.0


def test_metrics_callback_receives_summary_dict():
    seen = []
    compute_summary([ok(12)], 1.0, metrics_callback=seen.append)
    assert seen[0]["total"] == 1
    assert seen[0]["p95"] == 12.0


def test_wave_summary_fields():
    wave = build_wave_summary(20, [ok(10)] * 12 + [fail()] * 8)
    assert wave.concurrency_level == 20
    assert (wave.successful, wave.failed) == (12, 8)
    assert wave.error_rate == 40.0
    assert wave.avg_latency == wave.min_latency == wave.max_latency == 10.0


def test_empty_wave_summary():
    wave = build_wave_summary(10, [])
    assert wave.error_rate == 0.0
    assert wave.max_latency == wave.min_latency == 0.0
