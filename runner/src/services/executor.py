"""
Pipeline execution engine - walks a pipeline tree and drives the device
through the command dispatcher.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from runner.src.config import get_settings
from runner.src.errors import (
    BlockNotFound,
    EngineBusy,
    ImageMatchFailure,
    LoopBodyFailure,
    PipelineStopped,
    RunnerError,
)
from runner.src.models.block import Block, SpecialBlockId, default_catalog
from runner.src.models.context import RunContext
from runner.src.models.messages import ImageMatchResult, LogStartResult
from runner.src.models.pipeline import (
    BlockNode,
    Condition,
    ConditionType,
    ConditionalNode,
    LoopNode,
    Pipeline,
    PipelineNode,
    count_steps,
)
from runner.src.models.stats import NodeStats, NodeStatus, RunResult, TerminalReason
from runner.src.services.cancellation import CancelToken
from runner.src.services.dispatcher import CommandDispatcher
from runner.src.services.stats_tracker import StatsObserver, StatsTracker
from runner.src.services.variables import format_timestamp, resolve_variables

logger = logging.getLogger(__name__)
settings = get_settings()

DEFAULT_LOG_FILE_NAME = "log_$(time_current).txt"

LogObserver = Callable[[str], None]
CompleteObserver = Callable[[TerminalReason], None]
Predicate = Callable[[RunContext, Dict[str, NodeStats], bool], bool]

@dataclass
class _RunState:
    """Mutable state of one run."""
    token: CancelToken
    tracker: StatsTracker
    catalog: Dict[str, Block]
    on_log: Optional[LogObserver] = None
    logs: List[str] = field(default_factory=list)
    completed_steps: int = 0
    total_steps: int = 0
    last_success: bool = True
    active_log_ids: Set[str] = field(default_factory=set)

    def log(self, line: str):
        self.logs.append(line)
        logger.debug(line)
        if self.on_log:
            self.on_log(line)

class PipelineEngine:
    """
    Interprets one pipeline at a time.

    Nodes run strictly in order. Command blocks that fail are marked as
    errors and the run moves on; a failed image match or any error escaping
    a loop body ends the run. Cancellation is checked before every node and
    around every dispatched command.
    """

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        blocks: Optional[List[Block]] = None,
        predicates: Optional[Dict[str, Predicate]] = None,
        default_sleep_ms: Optional[int] = None,
        default_match_timeout_ms: Optional[int] = None,
    ):
        self.dispatcher = dispatcher
        self.blocks = list(blocks) if blocks is not None else default_catalog()
        self.predicates: Dict[str, Predicate] = dict(predicates or {})
        self.default_sleep_ms = default_sleep_ms or settings.default_sleep_ms
        self.default_match_timeout_ms = default_match_timeout_ms or settings.default_match_timeout_ms

        self._is_running = False
        self._state: Optional[_RunState] = None

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def logs(self) -> List[str]:
        return list(self._state.logs) if self._state else []

    @property
    def completed_steps(self) -> int:
        return self._state.completed_steps if self._state else 0

    @property
    def total_steps(self) -> int:
        return self._state.total_steps if self._state else 0

    def stats(self) -> Dict[str, NodeStats]:
        return self._state.tracker.snapshot() if self._state else {}

    def register_predicate(self, name: str, predicate: Predicate):
        self.predicates[name] = predicate

    def stop(self):
        """Signal the active run to stop at its next check."""
        if self._is_running and self._state:
            self._state.token.cancel()

    async def run(
        self,
        pipeline: Pipeline,
        on_log: Optional[LogObserver] = None,
        on_stats: Optional[StatsObserver] = None,
        cancel_token: Optional[CancelToken] = None,
        on_complete: Optional[CompleteObserver] = None,
        blocks: Optional[List[Block]] = None,
    ) -> RunResult:
        """
        Execute a pipeline to completion, stop or failure.
        Returns the run result; raises EngineBusy if a run is already active.
        """
        if self._is_running:
            raise EngineBusy(f"A pipeline is already running; rejected {pipeline.name}")
        self._is_running = True

        # The caller may keep editing its own copy while we run
        snapshot = pipeline.model_copy(deep=True)
        catalog = blocks if blocks is not None else self.blocks

        state = _RunState(
            token=cancel_token or CancelToken(),
            tracker=StatsTracker(on_stats=on_stats),
            catalog={b.id: b for b in catalog},
            on_log=on_log,
            total_steps=count_steps(snapshot.items),
        )
        self._state = state

        error: Optional[str] = None
        try:
            state.log(f"Starting Pipeline: {snapshot.name}")
            context = RunContext(time_start=format_timestamp())

            try:
                await self._execute_items(snapshot.items, state, context)
                reason = TerminalReason.COMPLETED
            except PipelineStopped:
                reason = TerminalReason.STOPPED
            except RunnerError as e:
                reason = TerminalReason.FAILED
                error = str(e)
            except Exception as e:
                logger.exception(f"Pipeline {snapshot.id} crashed")
                reason = TerminalReason.FAILED
                error = str(e)

            await self._release_logs(state)

            if reason == TerminalReason.COMPLETED:
                state.log("Pipeline Completed Successfully")
            elif reason == TerminalReason.STOPPED:
                state.log("!! Pipeline Stopped by User !!")
            else:
                state.log(f"Pipeline Failed: {error}")
        finally:
            self._is_running = False

        logger.info(f"Pipeline {snapshot.id} finished: {reason.value}")
        result = RunResult(
            pipeline_id=snapshot.id,
            reason=reason,
            error=error,
            stats=state.tracker.snapshot(),
            completed_steps=state.completed_steps,
            total_steps=state.total_steps,
        )
        if on_complete:
            on_complete(reason)
        return result

    async def _execute_items(self, items: List[PipelineNode], state: _RunState, context: RunContext):
        for node in items:
            state.token.raise_if_cancelled()

            if isinstance(node, ConditionalNode):
                await self._execute_conditional(node, state, context)
            elif isinstance(node, LoopNode):
                await self._execute_loop(node, state, context)
            elif isinstance(node, BlockNode):
                await self._execute_block_node(node, state, context)
            else:
                raise TypeError(f"Unknown pipeline node: {node!r}")

    async def _execute_conditional(self, node: ConditionalNode, state: _RunState, context: RunContext):
        state.log("[Conditional] Checking condition...")
        state.tracker.begin(node.id)

        result = self._evaluate_condition(node.condition, state, context)
        state.tracker.end(node.id, NodeStatus.SUCCESS, result=result)

        if result:
            state.log("  > TRUE Branch")
            await self._execute_items(node.children, state, context)
        else:
            state.log("  > FALSE Branch")
            await self._execute_items(node.else_children, state, context)

        state.last_success = True

    def _evaluate_condition(self, condition: Condition, state: _RunState, context: RunContext) -> bool:
        if condition.type == ConditionType.LAST_STEP_SUCCESS:
            state.log(f"  > Last Step Success? {'YES' if state.last_success else 'NO'}")
            return state.last_success

        predicate = self.predicates.get(condition.predicate or "")
        if predicate is None:
            logger.warning(f"Unknown condition predicate {condition.predicate!r}, treating as false")
            state.log(f"  > Unknown condition {condition.predicate!r}")
            return False

        result = bool(predicate(context, state.tracker.snapshot(), state.last_success))
        state.log(f"  > {condition.predicate}? {'YES' if result else 'NO'}")
        return result

    async def _execute_loop(self, node: LoopNode, state: _RunState, context: RunContext):
        total = max(node.loop_count, 0)
        state.log(f"-- Starting Loop ({total} times) --")
        state.tracker.begin(node.id, current_iteration=0, total_iterations=total)

        iteration = 0
        try:
            for iteration in range(1, total + 1):
                state.token.raise_if_cancelled()
                state.log(f"Loop Iteration {iteration}/{total}")
                state.tracker.update_loop_progress(node.id, iteration)

                await self._execute_items(node.children, state, context.for_iteration(iteration, total))
        except PipelineStopped:
            state.tracker.end(node.id, NodeStatus.ERROR)
            state.last_success = False
            raise
        except LoopBodyFailure:
            # Inner loop already named the failing iteration
            state.tracker.end(node.id, NodeStatus.ERROR)
            state.last_success = False
            raise
        except Exception as e:
            state.tracker.end(node.id, NodeStatus.ERROR)
            state.last_success = False
            raise LoopBodyFailure(node.id, iteration, str(e)) from e

        state.tracker.end(
            node.id,
            NodeStatus.SUCCESS,
            current_iteration=total,
            total_iterations=total,
        )
        state.last_success = True
        state.log("-- Loop Ended --")

    async def _execute_block_node(self, node: BlockNode, state: _RunState, context: RunContext):
        if node.block_id == SpecialBlockId.SLEEP.value:
            await self._run_sleep(node, state)
        elif node.block_id == SpecialBlockId.WAIT_FOR_IMAGE.value:
            await self._run_wait_for_image(node, state)
        elif node.block_id == SpecialBlockId.LOG_START.value:
            await self._run_log_start(node, state, context)
        elif node.block_id == SpecialBlockId.LOG_STOP.value:
            await self._run_log_stop(node, state)
        else:
            try:
                block = self._lookup_block(node.block_id, state)
            except BlockNotFound as e:
                logger.warning(f"Skipping node {node.id}: {e}")
                state.log(f"Error: {e}")
                return
            await self._run_commands(node, block, state, context)

    def _lookup_block(self, block_id: str, state: _RunState) -> Block:
        block = state.catalog.get(block_id)
        if block is None:
            raise BlockNotFound(block_id)
        return block

    async def _run_commands(self, node: BlockNode, block: Block, state: _RunState, context: RunContext):
        state.log(f"[{block.name}] Executing...")
        state.tracker.begin(node.id)

        has_error = False
        try:
            for raw_command in block.commands:
                state.token.raise_if_cancelled()

                command = resolve_variables(raw_command, context)
                state.log(f"  $ {command}")

                output = await self.dispatcher.dispatch(command, state.token)
                state.log(f"  > {output}")
                if "error" in output.lower():
                    has_error = True

                state.token.raise_if_cancelled()
        except PipelineStopped:
            state.tracker.end(node.id, NodeStatus.ERROR)
            state.last_success = False
            raise
        except Exception as e:
            # Command failures are contained to the block
            logger.warning(f"Block {block.id} ({node.id}) failed: {e}")
            has_error = True
            state.log(f"  ! Error: {e}")

        state.tracker.end(node.id, NodeStatus.ERROR if has_error else NodeStatus.SUCCESS)
        state.completed_steps += 1
        state.last_success = not has_error

    async def _run_sleep(self, node: BlockNode, state: _RunState):
        duration = node.sleep_duration if node.sleep_duration and node.sleep_duration > 0 else self.default_sleep_ms
        state.log(f"[Sleep] Waiting {duration}ms...")
        state.tracker.begin(node.id)

        interrupted = await state.token.sleep(duration / 1000)
        if interrupted:
            state.tracker.end(node.id, NodeStatus.ERROR)
            state.last_success = False
            raise PipelineStopped()

        state.tracker.end(node.id, NodeStatus.SUCCESS)
        state.completed_steps += 1
        state.last_success = True

    async def _run_wait_for_image(self, node: BlockNode, state: _RunState):
        timeout_ms = node.match_timeout if node.match_timeout and node.match_timeout > 0 else self.default_match_timeout_ms
        template_path = node.image_template_path

        if not template_path:
            state.log("[Wait Image] Error: No template image specified")
            state.tracker.record(node.id, NodeStatus.ERROR)
            state.completed_steps += 1
            state.last_success = False
            return

        state.log(f"[Wait Image] Waiting for image match (max {timeout_ms / 1000:g}s)...")
        state.tracker.begin(node.id)

        try:
            result = await self.dispatcher.wait_for_image(template_path, timeout_ms, state.token)
        except PipelineStopped:
            state.tracker.end(node.id, NodeStatus.ERROR)
            state.last_success = False
            raise
        except Exception as e:
            state.log(f"[Wait Image] Exception: {e}")
            result = ImageMatchResult(success=False, message=str(e))

        state.completed_steps += 1

        if result.success:
            confidence = f"{result.confidence:.2f}" if result.confidence is not None else "n/a"
            state.log(f"[Wait Image] Match Found! Confidence: {confidence}")
            state.tracker.end(node.id, NodeStatus.SUCCESS)
            state.last_success = True
            return

        reason = result.message or "Timeout"
        state.log(f"[Wait Image] Failed: {reason}")
        state.tracker.end(node.id, NodeStatus.ERROR)
        state.last_success = False
        raise ImageMatchFailure(f"Image match failed for {template_path}: {reason}")

    async def _run_log_start(self, node: BlockNode, state: _RunState, context: RunContext):
        block = state.catalog.get(SpecialBlockId.LOG_START.value)
        command = node.log_command or (block.log_command if block else None)
        filename = node.log_file_name or (block.log_file_name if block else None) or DEFAULT_LOG_FILE_NAME
        filename = resolve_variables(filename, context)

        state.log(f"[Block] Starting Background Log: {command} -> {filename}")
        state.tracker.begin(node.id, resolved_label=filename)

        try:
            result = await self.dispatcher.start_background_log(command, filename, state.token)
        except PipelineStopped:
            state.tracker.end(node.id, NodeStatus.ERROR)
            state.last_success = False
            raise
        except Exception as e:
            result = LogStartResult(success=False, error=str(e))

        if result.success and result.log_id:
            state.log(f"[Block] Log Started ID: {result.log_id}")
            state.active_log_ids.add(result.log_id)
            state.tracker.end(node.id, NodeStatus.SUCCESS)
            state.last_success = True
        else:
            state.log(f"[Block] Log Start Failed: {result.error}")
            state.tracker.end(node.id, NodeStatus.ERROR)
            state.last_success = False

        state.completed_steps += 1

    async def _run_log_stop(self, node: BlockNode, state: _RunState):
        state.log("[Block] Stopping Background Logs...")
        state.tracker.begin(node.id)

        if not state.active_log_ids:
            state.log("[Block] No active logs to stop.")
            ok = True
        else:
            block = state.catalog.get(SpecialBlockId.LOG_STOP.value)
            stop_command = node.stop_command or (block.stop_command if block else None)
            ok = await self._stop_logs(state, stop_command)
            state.log("[Block] All logs stopped.")

        state.tracker.end(node.id, NodeStatus.SUCCESS if ok else NodeStatus.ERROR)
        state.completed_steps += 1
        state.last_success = ok

    async def _stop_logs(self, state: _RunState, stop_command: Optional[str]) -> bool:
        """Stop every active background log in parallel. True if all acknowledged."""
        log_ids = sorted(state.active_log_ids)
        results = await asyncio.gather(*(self._stop_log(state, log_id, stop_command) for log_id in log_ids))
        return all(results)

    async def _stop_log(self, state: _RunState, log_id: str, stop_command: Optional[str]) -> bool:
        try:
            await self.dispatcher.stop_background_log(log_id, stop_command)
        except Exception as e:
            state.log(f"[Block] Log Stop Failed ID: {log_id} ({e})")
            return False
        state.log(f"[Block] Log Stopped ID: {log_id}")
        state.active_log_ids.discard(log_id)
        return True

    async def _release_logs(self, state: _RunState):
        """Stop background logs the pipeline left running."""
        if not state.active_log_ids:
            return
        state.log(f"[Block] Stopping {len(state.active_log_ids)} background log(s) left running...")
        await self._stop_logs(state, None)
