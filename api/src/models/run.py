from pydantic import BaseModel
from typing import Optional, List, Dict, Any

from runner.src.models.block import Block

class RunCreate(BaseModel):
    pipeline: Dict[str, Any]
    blocks: List[Block] = []

class RunCreated(BaseModel):
    run_id: str
    status: str
    total_steps: int

class RunStatusResponse(BaseModel):
    run_id: str
    status: str
    completed_steps: int = 0
    total_steps: int = 0
    stats: Dict[str, Any] = {}

class RunLogsResponse(BaseModel):
    run_id: str
    logs: List[str] = []

class PipelineValidateRequest(BaseModel):
    content: Optional[str] = None  # YAML or JSON text
    pipeline: Optional[Dict[str, Any]] = None

class PipelineValidateResponse(BaseModel):
    valid: bool
    total_steps: int
    pipeline: Dict[str, Any]
