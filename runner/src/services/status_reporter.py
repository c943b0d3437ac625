"""
Report run status, stats and log lines to Redis.
"""

import asyncio
import json
import logging
from typing import Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from runner.src.config import get_settings
from runner.src.models.messages import RUN_LOGS_PREFIX, RUN_STATS, RUN_STATUS
from runner.src.models.stats import NodeStats

logger = logging.getLogger(__name__)
settings = get_settings()

class StatusReporter:
    """
    Forwards one run's observer callbacks to Redis.

    The engine calls back synchronously, so updates are queued and written
    in order by a single writer task.
    """

    def __init__(self, client: redis.Redis, run_id: str, max_log_lines: Optional[int] = None):
        self.client = client
        self.run_id = run_id
        self.max_log_lines = max_log_lines or settings.max_log_lines
        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._progress: Dict[str, int] = {"completed_steps": 0, "total_steps": 0}

    @property
    def logs_key(self) -> str:
        return f"{RUN_LOGS_PREFIX}{self.run_id}"

    def start(self):
        self._writer = asyncio.create_task(self._write_loop())

    def on_log(self, line: str):
        self._queue.put_nowait(("log", line))

    def on_stats(self, snapshot: Dict[str, NodeStats]):
        # Progress is captured with the snapshot it belongs to
        self._queue.put_nowait(("stats", (snapshot, dict(self._progress))))

    def set_progress(self, completed_steps: int, total_steps: int):
        self._progress = {"completed_steps": completed_steps, "total_steps": total_steps}

    async def flush(self):
        """Write everything queued so far and stop the writer."""
        if self._writer is None:
            return
        self._queue.put_nowait(("close", None))
        await self._writer
        self._writer = None

    async def _write_loop(self):
        while True:
            kind, payload = await self._queue.get()
            if kind == "close":
                return
            try:
                if kind == "log":
                    await self._write_log(payload)
                else:
                    await self._write_stats(*payload)
            except RedisError as e:
                logger.error(f"Failed to report {kind} for run {self.run_id}: {e}")

    async def _write_log(self, line: str):
        await self.client.rpush(self.logs_key, line)
        await self.client.ltrim(self.logs_key, -self.max_log_lines, -1)

    async def _write_stats(self, snapshot: Dict[str, NodeStats], progress: Dict[str, int]):
        document = {
            **progress,
            "stats": {
                node_id: stats.model_dump(mode="json", by_alias=True, exclude_none=True)
                for node_id, stats in snapshot.items()
            },
        }
        await self.client.hset(RUN_STATS, self.run_id, json.dumps(document))

async def update_run_status(client: redis.Redis, run_id: str, status: str):
    """Update pipeline run status in Redis."""
    await client.hset(RUN_STATUS, run_id, status)
    logger.info(f"Updated run {run_id} status to {status}")
