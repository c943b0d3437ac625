from runner.src.models.block import (
    Block,
    BlockKind,
    SpecialBlockId,
    PREDEFINED_BLOCKS,
    SPECIAL_BLOCKS,
    default_catalog,
    merge_catalog,
)
from runner.src.models.pipeline import (
    NodeType,
    Condition,
    ConditionType,
    BlockNode,
    LoopNode,
    ConditionalNode,
    PipelineNode,
    Pipeline,
    iter_nodes,
    iter_block_nodes,
    count_steps,
)
from runner.src.models.stats import (
    NodeStatus,
    NodeStats,
    ExecutionStats,
    TerminalReason,
    RunResult,
)
from runner.src.models.context import RunContext
from runner.src.models.scenario import Scenario, ScenarioStep, ScenarioStepStatus
from runner.src.models.messages import RunJob

__all__ = [
    "Block",
    "BlockKind",
    "SpecialBlockId",
    "PREDEFINED_BLOCKS",
    "SPECIAL_BLOCKS",
    "default_catalog",
    "merge_catalog",
    "NodeType",
    "Condition",
    "ConditionType",
    "BlockNode",
    "LoopNode",
    "ConditionalNode",
    "PipelineNode",
    "Pipeline",
    "iter_nodes",
    "iter_block_nodes",
    "count_steps",
    "NodeStatus",
    "NodeStats",
    "ExecutionStats",
    "TerminalReason",
    "RunResult",
    "RunContext",
    "Scenario",
    "ScenarioStep",
    "ScenarioStepStatus",
    "RunJob",
]
