"""
Redis queue service for pipeline runs.
"""

import redis.asyncio as redis
import json
from typing import Dict, Any, List, Optional

from api.src.config import get_settings
from runner.src.models.messages import (
    RUN_QUEUE,
    RUN_STATUS,
    RUN_STATS,
    RUN_LOGS_PREFIX,
    RUN_STOP_PREFIX,
    RunJob,
)

settings = get_settings()

STOP_REQUEST_TTL = 3600  # seconds

async def get_redis_client() -> redis.Redis:
    """Get async Redis client."""
    return redis.from_url(settings.redis_url, decode_responses=True)

async def enqueue_run(job: RunJob):
    """Add a pipeline run to the processing queue."""
    client = await get_redis_client()

    try:
        await client.lpush(RUN_QUEUE, job.model_dump_json(by_alias=True))
        await client.hset(RUN_STATUS, job.run_id, "queued")
    finally:
        await client.close()

async def request_stop(run_id: str):
    """Ask the worker to stop a run at its next check."""
    client = await get_redis_client()

    try:
        await client.set(f"{RUN_STOP_PREFIX}{run_id}", "1", ex=STOP_REQUEST_TTL)
    finally:
        await client.close()

async def get_run_status(run_id: str) -> Optional[str]:
    """Get pipeline run status from Redis."""
    client = await get_redis_client()

    try:
        return await client.hget(RUN_STATUS, run_id)
    finally:
        await client.close()

async def get_run_stats(run_id: str) -> Optional[Dict[str, Any]]:
    """Get the latest stats snapshot and progress of a run."""
    client = await get_redis_client()

    try:
        raw = await client.hget(RUN_STATS, run_id)
        return json.loads(raw) if raw else None
    finally:
        await client.close()

async def get_run_logs(run_id: str) -> List[str]:
    """Get the retained log lines of a run."""
    client = await get_redis_client()

    try:
        return await client.lrange(f"{RUN_LOGS_PREFIX}{run_id}", 0, -1)
    finally:
        await client.close()

async def get_queue_length() -> int:
    """Get number of runs in queue."""
    client = await get_redis_client()

    try:
        return await client.llen(RUN_QUEUE)
    finally:
        await client.close()
