"""
Execution stats models.
"""

from pydantic import BaseModel, Field
from typing import Dict, Optional
from enum import Enum

class NodeStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"

TERMINAL_STATUSES = {NodeStatus.SUCCESS, NodeStatus.ERROR}

class NodeStats(BaseModel):
    start_time: int = Field(alias="startTime")  # epoch milliseconds
    end_time: Optional[int] = Field(default=None, alias="endTime")
    duration: Optional[int] = None
    status: NodeStatus = NodeStatus.RUNNING

    # Loop progress
    current_iteration: Optional[int] = Field(default=None, alias="currentIteration")
    total_iterations: Optional[int] = Field(default=None, alias="totalIterations")

    # Conditional outcome
    result: Optional[bool] = None

    # Display label resolved at run time (log file names)
    resolved_label: Optional[str] = Field(default=None, alias="resolvedLabel")

    class Config:
        populate_by_name = True

ExecutionStats = Dict[str, NodeStats]

class TerminalReason(str, Enum):
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"

class RunResult(BaseModel):
    pipeline_id: str
    reason: TerminalReason
    error: Optional[str] = None
    stats: Dict[str, NodeStats] = {}
    completed_steps: int = 0
    total_steps: int = 0

    @property
    def succeeded(self) -> bool:
        return self.reason == TerminalReason.COMPLETED
