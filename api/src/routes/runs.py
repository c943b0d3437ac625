from fastapi import APIRouter, HTTPException
import uuid

from api.src.models.run import RunCreate, RunCreated, RunStatusResponse, RunLogsResponse
from api.src.services.pipeline_parser import parse_pipeline_dict, PipelineConfigError
from api.src.services.queue import (
    enqueue_run,
    request_stop,
    get_run_status,
    get_run_stats,
    get_run_logs,
)
from runner.src.models.block import merge_catalog
from runner.src.models.messages import RunJob

router = APIRouter(prefix="/runs", tags=["runs"])

FINISHED_STATUSES = {"completed", "stopped", "failed"}

@router.post("", response_model=RunCreated, status_code=201)
async def create_run(request: RunCreate):
    """Validate a pipeline and queue it for execution."""
    catalog = merge_catalog(request.blocks)

    try:
        pipeline = parse_pipeline_dict(request.pipeline, catalog)
    except PipelineConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))

    run_id = str(uuid.uuid4())
    await enqueue_run(RunJob(run_id=run_id, pipeline=pipeline, blocks=request.blocks))

    return RunCreated(run_id=run_id, status="queued", total_steps=pipeline.total_steps())

@router.post("/{run_id}/stop")
async def stop_run(run_id: str):
    """Request a stop; the worker observes it at the next node or command."""
    status = await get_run_status(run_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Pipeline run not found")
    if status in FINISHED_STATUSES:
        raise HTTPException(status_code=409, detail=f"Pipeline run already {status}")

    await request_stop(run_id)
    return {"run_id": run_id, "status": "stopping"}

@router.get("/{run_id}", response_model=RunStatusResponse)
async def get_run(run_id: str):
    """Get status, progress and per-node stats of a run."""
    status = await get_run_status(run_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Pipeline run not found")

    document = await get_run_stats(run_id) or {}
    return RunStatusResponse(
        run_id=run_id,
        status=status,
        completed_steps=document.get("completed_steps", 0),
        total_steps=document.get("total_steps", 0),
        stats=document.get("stats", {}),
    )

@router.get("/{run_id}/logs", response_model=RunLogsResponse)
async def get_logs(run_id: str):
    """Get the log lines of a run."""
    status = await get_run_status(run_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Pipeline run not found")

    return RunLogsResponse(run_id=run_id, logs=await get_run_logs(run_id))
