from typing import List, Literal
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from downpour.api.jobs import RunManager, RunStatus
from downpour.config import LoadConfig, StressConfig
from downpour.errors import ConfigurationError

app = FastAPI(title="Downpour API", description="API for load and stress runs against one HTTP endpoint")

# Enable CORS for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

run_manager = RunManager()


class RunCreate(BaseModel):
    base_url: str
    mode: Literal["load", "stress", "all"] = "all"
    routes: List[str] = []
    duration: float = 5.0
    rps: int = 5
    max_load: int = 50
    increment: int = 10
    error_threshold: float = 30.0
    timeout: float = 5.0


@app.post("/api/runs", response_model=dict)
async def create_run(request: RunCreate):
    try:
        # only the phases this mode runs are validated
        load = stress = None
        if request.mode in ("load", "all"):
            load = LoadConfig(request.duration, request.rps)
        if request.mode in ("stress", "all"):
            stress = StressConfig(request.max_load, request.increment, request.error_threshold)
        run_id = run_manager.create_run(
            mode=request.mode,
            base_url=request.base_url,
            routes=request.routes,
            load=load,
            stress=stress,
            timeout_s=request.timeout,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    run = run_manager.get_run(run_id)
    return {"run_id": run_id, "target_route": run.target_route}


@app.get("/api/runs", response_model=List[RunStatus])
async def list_runs():
    return run_manager.list_runs()


@app.get("/api/runs/{run_id}", response_model=RunStatus)
async def get_run(run_id: str):
    run = run_manager.get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")
    return run


@app.delete("/api/runs/{run_id}")
async def delete_run(run_id: str):
    run = run_manager.get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")
    if run_manager.cancel_run(run_id):
        return {"status": "cancelling"}
    run_manager.delete_run(run_id)
    return {"status": "deleted"}


@app.get("/")
async def read_root():
    return {"message": "Downpour API is running."}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
