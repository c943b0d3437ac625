"""
Scenario runner - executes a list of pipelines back to back on one engine.
"""

import logging
from typing import Callable, Dict, List, Optional

from runner.src.models.block import Block
from runner.src.models.pipeline import Pipeline
from runner.src.models.scenario import Scenario, ScenarioStepResult, ScenarioStepStatus
from runner.src.models.stats import TerminalReason
from runner.src.services.cancellation import CancelToken
from runner.src.services.executor import LogObserver, PipelineEngine
from runner.src.services.stats_tracker import StatsObserver

logger = logging.getLogger(__name__)

ScenarioObserver = Callable[[Dict[str, ScenarioStepResult]], None]

async def run_scenario(
    engine: PipelineEngine,
    scenario: Scenario,
    pipelines: List[Pipeline],
    on_log: Optional[LogObserver] = None,
    on_stats: Optional[StatsObserver] = None,
    on_steps: Optional[ScenarioObserver] = None,
    cancel_token: Optional[CancelToken] = None,
    blocks: Optional[List[Block]] = None,
    pause_between_steps: float = 0.0,
) -> TerminalReason:
    """
    Run the enabled steps of a scenario in order.

    A step whose pipeline is missing is marked failed and skipped. The first
    pipeline that fails or is stopped ends the scenario. Each pipeline run
    starts with fresh stats.
    """
    token = cancel_token or CancelToken()
    by_id = {p.id: p for p in pipelines}
    steps: Dict[str, ScenarioStepResult] = {s.id: ScenarioStepResult() for s in scenario.steps}

    def log(line: str):
        logger.debug(line)
        if on_log:
            on_log(line)

    def set_step(step_id: str, status: ScenarioStepStatus, error: Optional[str] = None):
        steps[step_id] = ScenarioStepResult(status=status, error=error)
        if on_steps:
            on_steps({k: v.model_copy() for k, v in steps.items()})

    log(f"Starting Scenario: {scenario.name}")
    outcome = TerminalReason.COMPLETED
    failure: Optional[str] = None

    for step in scenario.steps:
        if not step.enabled:
            continue
        if token.cancelled:
            outcome = TerminalReason.STOPPED
            break

        pipeline = by_id.get(step.pipeline_id)
        if pipeline is None:
            log(f"Error: Pipeline {step.pipeline_id} not found")
            set_step(step.id, ScenarioStepStatus.FAILED, "Pipeline not found")
            continue

        log(f">> Starting Step: {pipeline.name}")
        set_step(step.id, ScenarioStepStatus.RUNNING)

        result = await engine.run(
            pipeline,
            on_log=on_log,
            on_stats=on_stats,
            cancel_token=token,
            blocks=blocks,
        )

        if result.reason == TerminalReason.COMPLETED:
            set_step(step.id, ScenarioStepStatus.SUCCESS)
            log(f">> Step Completed: {pipeline.name}")
        else:
            error = result.error or "Pipeline Stopped"
            set_step(step.id, ScenarioStepStatus.FAILED, error)
            log(f">> Step Failed: {pipeline.name} - {error}")
            outcome = result.reason
            failure = error
            break

        if pause_between_steps > 0 and await token.sleep(pause_between_steps):
            outcome = TerminalReason.STOPPED
            break

    if outcome == TerminalReason.COMPLETED:
        log("Scenario Completed Successfully")
    elif outcome == TerminalReason.STOPPED:
        log("!! Scenario Stopped by User !!")
    else:
        log(f"Scenario Failed: {failure}")

    return outcome
