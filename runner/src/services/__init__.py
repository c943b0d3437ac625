from runner.src.services.cancellation import CancelToken
from runner.src.services.variables import resolve_variables, format_timestamp
from runner.src.services.dispatcher import CommandDispatcher
from runner.src.services.stats_tracker import StatsTracker
from runner.src.services.executor import PipelineEngine
from runner.src.services.scenario import run_scenario
from runner.src.services.status_reporter import (
    StatusReporter,
    update_run_status,
)

__all__ = [
    "CancelToken",
    "resolve_variables",
    "format_timestamp",
    "CommandDispatcher",
    "StatsTracker",
    "PipelineEngine",
    "run_scenario",
    "StatusReporter",
    "update_run_status",
]
