"""
Quick sanity run: load then stress against a local backend.
Run: uv run examples/stress_local_api.py
"""
import asyncio
import os

from downpour import LoadStressEngine
from downpour.config import LoadConfig, StressConfig
from downpour.rendering import render_load_report, render_stress_report

ROUTES = [
    "/api/auth/login",
    "/api/products/:id",
    "/api/products",
    "/api/health",
]

async def main():
    engine = LoadStressEngine(
        os.getenv("BASE_URL", "http://localhost:3001"),
        candidate_routes=ROUTES,
        probe_timeout_s=float(os.getenv("DOWNPOUR_PROBE_TIMEOUT_S", "5")),
        progress_callback=lambda e: print(f"  {e.phase} step={e.step} level={e.level} errors={e.error_rate:.2f}%"),
    )
    suite = await engine.run_all(
        load=LoadConfig(duration_seconds=3, requests_per_second=5),
        stress=StressConfig(max_load=40, increment=10),
    )
    print()
    print(render_load_report(suite.load))
    if suite.stress is not None:
        print()
        print(render_stress_report(suite.stress))

if __name__ == "__main__":
    asyncio.run(main())
