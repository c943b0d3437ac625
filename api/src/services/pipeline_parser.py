"""
Pipeline definition parser and validator.
"""

import uuid
import yaml
from pydantic import ValidationError
from typing import List, Dict, Any, Optional, Set

from runner.src.models.block import Block, SPECIAL_BLOCK_IDS, default_catalog
from runner.src.models.pipeline import Pipeline, iter_block_nodes

NODE_TYPES = ("block", "loop", "conditional")

class PipelineConfigError(Exception):
    """Raised when pipeline configuration is invalid."""
    pass

def parse_pipeline_config(content: str, blocks: Optional[List[Block]] = None) -> Pipeline:
    """Parse a pipeline definition from YAML (or JSON) text."""
    try:
        config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise PipelineConfigError(f"Invalid YAML: {e}")

    return parse_pipeline_dict(config, blocks)

def parse_pipeline_dict(config: Optional[Dict[str, Any]], blocks: Optional[List[Block]] = None) -> Pipeline:
    """
    Validate a pipeline definition dict and build the Pipeline model.
    When a block catalog is given, block references are checked against it.
    """
    normalized = validate_config(config)

    try:
        pipeline = Pipeline.model_validate(normalized)
    except ValidationError as e:
        raise PipelineConfigError(f"Invalid pipeline: {e}")

    if blocks is not None:
        validate_block_refs(pipeline, blocks)

    return pipeline

def validate_config(config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate pipeline configuration structure."""
    if not config:
        raise PipelineConfigError("Empty pipeline configuration")

    if not isinstance(config, dict):
        raise PipelineConfigError("Pipeline configuration must be a dictionary")

    name = config.get("name", "Unnamed Pipeline")
    if not isinstance(name, str):
        raise PipelineConfigError("Pipeline 'name' must be a string")

    pipeline_id = config.get("id") or str(uuid.uuid4())
    if not isinstance(pipeline_id, str):
        raise PipelineConfigError("Pipeline 'id' must be a string")

    if "items" not in config:
        raise PipelineConfigError("Pipeline must have 'items' defined")

    seen: Set[str] = set()
    items = validate_items(config["items"], "items", seen)

    return {
        "id": pipeline_id,
        "name": name,
        "items": items,
    }

def validate_items(items: Any, path: str, seen: Set[str]) -> List[Dict[str, Any]]:
    if not isinstance(items, list):
        raise PipelineConfigError(f"'{path}' must be a list")
    return [validate_node(node, f"{path}[{i}]", seen) for i, node in enumerate(items)]

def validate_node(node: Any, path: str, seen: Set[str]) -> Dict[str, Any]:
    """Validate a single pipeline node and its children."""
    if not isinstance(node, dict):
        raise PipelineConfigError(f"Node {path} must be a dictionary")

    node_id = node.get("id")
    if not isinstance(node_id, str) or not node_id:
        raise PipelineConfigError(f"Node {path} missing 'id'")

    # Stats are keyed by flat id, so ids must be unique across the whole tree
    if node_id in seen:
        raise PipelineConfigError(f"Duplicate node id '{node_id}' at {path}")
    seen.add(node_id)

    node_type = node.get("type")
    if node_type not in NODE_TYPES:
        raise PipelineConfigError(f"Node {path} has unknown type {node_type!r}")

    validated = dict(node)

    if node_type == "block":
        if not isinstance(node.get("blockId"), str):
            raise PipelineConfigError(f"Block node {path} missing 'blockId'")

    elif node_type == "loop":
        loop_count = node.get("loopCount", 1)
        if isinstance(loop_count, bool) or not isinstance(loop_count, int):
            raise PipelineConfigError(f"Loop node {path} 'loopCount' must be an integer")
        validated["children"] = validate_items(node.get("children", []), f"{path}.children", seen)

    elif node_type == "conditional":
        condition = node.get("condition") or {}
        if not isinstance(condition, dict):
            raise PipelineConfigError(f"Conditional node {path} 'condition' must be a dictionary")
        if condition.get("type") == "custom" and not condition.get("predicate"):
            raise PipelineConfigError(f"Conditional node {path} custom condition missing 'predicate'")
        validated["condition"] = condition
        validated["children"] = validate_items(node.get("children", []), f"{path}.children", seen)
        validated["elseChildren"] = validate_items(node.get("elseChildren", []), f"{path}.elseChildren", seen)

    return validated

def validate_block_refs(pipeline: Pipeline, blocks: Optional[List[Block]] = None):
    """Check that every block node references a known block."""
    known = {b.id for b in (blocks if blocks is not None else default_catalog())} | SPECIAL_BLOCK_IDS
    for node in iter_block_nodes(pipeline.items):
        if node.block_id not in known:
            raise PipelineConfigError(f"Node '{node.id}' references unknown block '{node.block_id}'")
