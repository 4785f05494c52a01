import json

from downpour.metrics import build_load_report, build_wave_summary
from downpour.models import PhaseState, ProbeOutcome, StressReport
from downpour.persistence import save_report, save_reports


def test_save_load_report(tmp_path):
    report = build_load_report([ProbeOutcome(True, 8.0, 200)] * 3, 1.0, target_route="/api/health")
    path = save_report(report, str(tmp_path / "reports" / "load.json"))

    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    assert data["type"] == "LOAD_TEST"
    assert data["total_requests"] == 3
    assert data["target_route"] == "/api/health"
    assert "timestamp" in data


def test_save_stress_and_load_together(tmp_path):
    load = build_load_report([], 0.0)
    stress = StressReport(
        waves=(build_wave_summary(10, [ProbeOutcome(True, 4.0, 200)] * 10),),
        max_concurrency_reached=10,
        terminal_state=PhaseState.MAX_LOAD_EXHAUSTED,
    )
    path = save_reports([load, stress], str(tmp_path / "suite.json"))

    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    assert [r["type"] for r in data["results"]] == ["LOAD_TEST", "STRESS_TEST"]
    assert data["results"][1]["terminal_state"] == "max_load_exhausted"
    assert data["results"][1]["waves"][0]["concurrency_level"] == 10


def test_saved_reports_carry_error_rate_labels(tmp_path):
    load = build_load_report(
        [ProbeOutcome(True, 5.0, 200), ProbeOutcome(False, 5.0, 500)], 1.0
    )
    wave = build_wave_summary(3, [ProbeOutcome(False, 1.0)] + [ProbeOutcome(True, 1.0, 200)] * 2)
    stress = StressReport(
        waves=(wave,),
        max_concurrency_reached=3,
        breaking_point_hit=True,
        terminal_state=PhaseState.LIMIT_REACHED,
    )
    path = save_reports([load, stress], str(tmp_path / "labels.json"))

    with open(path, encoding="utf-8") as f:
        load_data, stress_data = json.load(f)["results"]
    assert load_data["error_rate_label"] == "50.00%"
    assert stress_data["waves"][0]["error_rate_label"] == "33.33%"
