"""
Queue worker - pulls run jobs from Redis and executes them.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from runner.src.channel.redis_channel import RedisChannel
from runner.src.config import get_settings
from runner.src.models.block import merge_catalog
from runner.src.models.messages import RUN_QUEUE, RUN_STOP_PREFIX, RunJob
from runner.src.models.stats import NodeStats, RunResult
from runner.src.services.cancellation import CancelToken
from runner.src.services.dispatcher import CommandDispatcher
from runner.src.services.executor import PipelineEngine
from runner.src.services.status_reporter import StatusReporter, update_run_status

logger = logging.getLogger(__name__)
settings = get_settings()

async def get_next_job(client: redis.Redis) -> Optional[Dict[str, Any]]:
    """Pull next job from Redis queue."""
    result = await client.brpop(RUN_QUEUE, timeout=5)
    if not result:
        return None

    _, job_data = result
    try:
        data = json.loads(job_data)
    except ValueError as e:
        logger.error(f"Dropping malformed job {job_data!r}: {e}")
        return None
    if not isinstance(data, dict):
        logger.error(f"Dropping malformed job {job_data!r}: not an object")
        return None
    return data

async def watch_for_stop(client: redis.Redis, run_id: str, token: CancelToken):
    """Poll the run's stop key and cancel the token once it appears."""
    key = f"{RUN_STOP_PREFIX}{run_id}"
    while not token.cancelled:
        try:
            if await client.exists(key):
                logger.info(f"Stop requested for run {run_id}")
                token.cancel()
                await client.delete(key)
                return
        except RedisError as e:
            logger.warning(f"Stop check failed for run {run_id}: {e}")
        await asyncio.sleep(settings.stop_poll_interval)

async def execute_job(client: redis.Redis, engine: PipelineEngine, job: RunJob) -> RunResult:
    """Run one job on the engine, reporting progress to Redis."""
    run_id = job.run_id
    token = CancelToken()
    reporter = StatusReporter(client, run_id)

    def on_stats(snapshot: Dict[str, NodeStats]):
        reporter.set_progress(engine.completed_steps, engine.total_steps)
        reporter.on_stats(snapshot)

    reporter.start()
    watcher = asyncio.create_task(watch_for_stop(client, run_id, token))
    await update_run_status(client, run_id, "running")

    try:
        result = await engine.run(
            job.pipeline,
            on_log=reporter.on_log,
            on_stats=on_stats,
            cancel_token=token,
            blocks=merge_catalog(job.blocks) if job.blocks else None,
        )
        # Final snapshot carries the settled step counters
        reporter.set_progress(result.completed_steps, result.total_steps)
        reporter.on_stats(result.stats)
    finally:
        watcher.cancel()
        try:
            await watcher
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.exception(f"Stop watcher for run {run_id} failed: {e}")
        await reporter.flush()

    await update_run_status(client, run_id, result.reason.value)
    return result

async def worker_loop(engine: PipelineEngine):
    """Main worker loop."""
    client = redis.from_url(settings.redis_url, decode_responses=True)
    logger.info("Worker started, waiting for runs...")

    try:
        while True:
            try:
                data = await get_next_job(client)
                if not data:
                    continue

                run_id = data.get("run_id", "unknown")
                logger.info(f"Received job for run {run_id}")

                try:
                    job = RunJob.model_validate(data)
                    await execute_job(client, engine, job)
                except Exception as e:
                    logger.exception(f"Failed to execute run {run_id}: {e}")
                    await update_run_status(client, run_id, "failed")

            except RedisError as e:
                logger.exception(f"Worker error: {e}")
                await asyncio.sleep(5)
    finally:
        await client.close()

async def serve():
    channel = RedisChannel()
    await channel.connect()
    engine = PipelineEngine(CommandDispatcher(channel))
    try:
        await worker_loop(engine)
    finally:
        await channel.close()

def run_worker():
    """Entry point for worker."""
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("Worker shutting down...")
