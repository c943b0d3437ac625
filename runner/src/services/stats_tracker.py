"""
Per-run stats tracking.
"""

import logging
import time
from typing import Callable, Dict, Optional

from runner.src.models.stats import NodeStats, NodeStatus, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

StatsObserver = Callable[[Dict[str, NodeStats]], None]

def now_ms() -> int:
    return int(time.time() * 1000)

class StatsTracker:
    """
    Mapping of node id to its timing and status for one run.

    Observers only ever receive copies. Within one execution of a node the
    status moves forward only (running -> success/error). A node inside a
    loop body is re-begun on every iteration, so across iterations its status
    goes from success or error back to running. Only the latest iteration
    is kept.
    """

    def __init__(
        self,
        on_stats: Optional[StatsObserver] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._stats: Dict[str, NodeStats] = {}
        self._on_stats = on_stats
        self._clock = clock

    def __len__(self) -> int:
        return len(self._stats)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._stats

    def get(self, node_id: str) -> Optional[NodeStats]:
        stats = self._stats.get(node_id)
        return stats.model_copy() if stats else None

    def snapshot(self) -> Dict[str, NodeStats]:
        return {node_id: stats.model_copy() for node_id, stats in self._stats.items()}

    def begin(self, node_id: str, **fields) -> NodeStats:
        """Start a new execution of a node."""
        stats = NodeStats(start_time=self._clock(), status=NodeStatus.RUNNING, **fields)
        self._stats[node_id] = stats
        self._notify()
        return stats

    def end(self, node_id: str, status: NodeStatus, **fields) -> Optional[NodeStats]:
        """Finish the current execution of a node."""
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"Cannot end node {node_id} with status {status}")

        stats = self._stats.get(node_id)
        if stats is None:
            logger.warning(f"Ignoring end of node {node_id} that never began")
            return None
        if stats.status in TERMINAL_STATUSES:
            logger.warning(f"Ignoring end of node {node_id}: already {stats.status.value}")
            return stats

        end_time = self._clock()
        stats.end_time = end_time
        stats.duration = end_time - stats.start_time
        stats.status = status
        for key, value in fields.items():
            setattr(stats, key, value)
        self._notify()
        return stats

    def record(self, node_id: str, status: NodeStatus, **fields) -> NodeStats:
        """Record a node that starts and finishes at once."""
        self.begin(node_id, **fields)
        return self.end(node_id, status)

    def update_loop_progress(self, node_id: str, iteration: int, total: Optional[int] = None):
        stats = self._stats.get(node_id)
        if stats is None or stats.status in TERMINAL_STATUSES:
            return
        stats.current_iteration = iteration
        if total is not None:
            stats.total_iterations = total
        self._notify()

    def _notify(self):
        if self._on_stats:
            self._on_stats(self.snapshot())
