import uuid
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime, timedelta

from downpour.config import LoadConfig, StressConfig
from downpour.core import LoadStressEngine
from downpour.models import ProgressEvent
from downpour.utils import GracefulKiller

logger = logging.getLogger(__name__)


class RunProgress(BaseModel):
    """Last progress event seen for a run"""
    phase: str
    step: int
    level: int
    completed: int
    failed: int
    error_rate: float


class RunStatus(BaseModel):
    id: str
    status: str  # "pending", "running", "completed", "cancelled", "failed"
    mode: str  # "load", "stress", "all"
    base_url: str
    target_route: str = ""
    progress: Optional[RunProgress] = None
    results: List[Dict[str, Any]] = []
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None


class RunManager:
    def __init__(self, engine_factory: Callable[..., LoadStressEngine] = LoadStressEngine):
        self.engine_factory = engine_factory
        self.runs: Dict[str, RunStatus] = {}
        self._engines: Dict[str, LoadStressEngine] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._cleanup_task: Optional[asyncio.Task] = None

    def create_run(
        self,
        mode: str,
        base_url: str,
        routes: List[str],
        load: Optional[LoadConfig],
        stress: Optional[StressConfig],
        timeout_s: float,
    ) -> str:
        """Validate and schedule a run; configuration errors propagate to the caller."""
        run_id = str(uuid.uuid4())
        run = RunStatus(id=run_id, status="pending", mode=mode, base_url=base_url)

        def progress_callback(event: ProgressEvent):
            run.progress = RunProgress(
                phase=event.phase,
                step=event.step,
                level=event.level,
                completed=event.completed,
                failed=event.failed,
                error_rate=event.error_rate,
            )

        engine = self.engine_factory(
            base_url,
            candidate_routes=routes,
            probe_timeout_s=timeout_s,
            progress_callback=progress_callback,
            killer=GracefulKiller(),
        )
        run.target_route = engine.target_route
        self.runs[run_id] = run
        self._engines[run_id] = engine

        self._ensure_cleanup()
        self._tasks[run_id] = asyncio.create_task(self._run(run_id, load, stress))
        return run_id

    async def _run(
        self, run_id: str, load: Optional[LoadConfig], stress: Optional[StressConfig]
    ):
        run = self.runs[run_id]
        engine = self._engines[run_id]
        if engine.killer.kill_now:
            # cancelled before it started
            run.status = "cancelled"
            run.completed_at = datetime.now()
            self._tasks.pop(run_id, None)
            self._engines.pop(run_id, None)
            return
        run.status = "running"

        try:
            if run.mode == "load":
                reports = [await engine.run_load(load.duration_seconds, load.requests_per_second)]
            elif run.mode == "stress":
                reports = [
                    await engine.run_stress(stress.max_load, stress.increment, stress.error_threshold)
                ]
            else:
                suite = await engine.run_all(load, stress)
                reports = [r for r in (suite.load, suite.stress) if r is not None]

            run.results = [r.to_dict() for r in reports]
            run.status = "cancelled" if engine.killer.kill_now else "completed"
            run.completed_at = datetime.now()
        except Exception as e:
            logger.error(f"Run {run_id} failed: {e}")
            run.status = "failed"
            run.error = str(e)
        finally:
            self._tasks.pop(run_id, None)
            self._engines.pop(run_id, None)

    def get_run(self, run_id: str) -> Optional[RunStatus]:
        return self.runs.get(run_id)

    def list_runs(self) -> List[RunStatus]:
        return sorted(self.runs.values(), key=lambda x: x.created_at, reverse=True)

    def is_active(self, run_id: str) -> bool:
        return run_id in self._tasks

    def cancel_run(self, run_id: str) -> bool:
        """Ask an active run to stop after its current batch or wave."""
        engine = self._engines.get(run_id)
        if engine is None:
            return False
        logger.info(f"Cancelling run {run_id}")
        engine.cancel()
        return True

    def delete_run(self, run_id: str):
        self.runs.pop(run_id, None)

    def _ensure_cleanup(self):
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def _cleanup_loop(self):
        """Periodically forget finished runs older than a day."""
        while True:
            await asyncio.sleep(3600)  # Check every hour
            now = datetime.now()
            stale = [
                run_id
                for run_id, run in self.runs.items()
                if not self.is_active(run_id) and now - run.created_at > timedelta(hours=24)
            ]
            for run_id in stale:
                logger.info(f"Cleaning up old run: {run_id}")
                self.delete_run(run_id)
