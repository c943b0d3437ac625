"""
Pipeline tree models.

A pipeline is an ordered list of nodes. Loops and conditionals hold child
sequences, so the whole thing is a tree. Node ids are unique across the tree,
nested children included, since stats are indexed by flat id.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any, Union, Iterator, Annotated, Literal
from enum import Enum

class NodeType(str, Enum):
    BLOCK = "block"
    LOOP = "loop"
    CONDITIONAL = "conditional"

class ConditionType(str, Enum):
    LAST_STEP_SUCCESS = "last_step_success"
    CUSTOM = "custom"

class Condition(BaseModel):
    type: ConditionType = ConditionType.LAST_STEP_SUCCESS
    predicate: Optional[str] = None  # Name of a registered predicate, for custom conditions
    params: Dict[str, Any] = {}

class BlockNode(BaseModel):
    id: str
    type: Literal["block"] = "block"
    block_id: str = Field(alias="blockId")

    # Special block options
    sleep_duration: Optional[int] = Field(default=None, alias="sleepDuration")
    image_template_path: Optional[str] = Field(default=None, alias="imageTemplatePath")
    match_timeout: Optional[int] = Field(default=None, alias="matchTimeout")
    log_command: Optional[str] = Field(default=None, alias="logCommand")
    log_file_name: Optional[str] = Field(default=None, alias="logFileName")
    stop_command: Optional[str] = Field(default=None, alias="stopCommand")

    class Config:
        populate_by_name = True

class LoopNode(BaseModel):
    id: str
    type: Literal["loop"] = "loop"
    loop_count: int = Field(default=1, alias="loopCount")
    children: List["PipelineNode"] = []

    class Config:
        populate_by_name = True

class ConditionalNode(BaseModel):
    id: str
    type: Literal["conditional"] = "conditional"
    condition: Condition = Field(default_factory=Condition)
    children: List["PipelineNode"] = []
    else_children: List["PipelineNode"] = Field(default=[], alias="elseChildren")

    class Config:
        populate_by_name = True

PipelineNode = Annotated[
    Union[BlockNode, LoopNode, ConditionalNode],
    Field(discriminator="type"),
]

LoopNode.model_rebuild()
ConditionalNode.model_rebuild()

class Pipeline(BaseModel):
    id: str
    name: str
    items: List[PipelineNode] = []

    def node_ids(self) -> List[str]:
        """All node ids, depth-first, in tree order."""
        return [node.id for node in iter_nodes(self.items)]

    def total_steps(self) -> int:
        return count_steps(self.items)

def iter_nodes(items: List[PipelineNode]) -> Iterator[PipelineNode]:
    """Depth-first walk over every node, both conditional branches included."""
    for node in items:
        yield node
        if isinstance(node, LoopNode):
            yield from iter_nodes(node.children)
        elif isinstance(node, ConditionalNode):
            yield from iter_nodes(node.children)
            yield from iter_nodes(node.else_children)

def iter_block_nodes(items: List[PipelineNode]) -> Iterator[BlockNode]:
    for node in iter_nodes(items):
        if isinstance(node, BlockNode):
            yield node

def count_steps(items: List[PipelineNode]) -> int:
    """
    Number of block executions a run is expected to perform.

    A loop contributes loop_count times its body. A conditional contributes
    its true branch only; the else branch is not counted, so progress may
    read short when the else branch runs.
    """
    total = 0
    for node in items:
        if isinstance(node, BlockNode):
            total += 1
        elif isinstance(node, LoopNode):
            total += max(node.loop_count, 0) * count_steps(node.children)
        elif isinstance(node, ConditionalNode):
            total += count_steps(node.children)
    return total
