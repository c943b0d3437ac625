"""
Scenario models: an ordered list of pipelines run back to back.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from enum import Enum

class ScenarioStepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

class ScenarioStep(BaseModel):
    id: str
    pipeline_id: str = Field(alias="pipelineId")
    enabled: bool = True

    class Config:
        populate_by_name = True

class Scenario(BaseModel):
    id: str
    name: str
    steps: List[ScenarioStep] = []

class ScenarioStepResult(BaseModel):
    status: ScenarioStepStatus = ScenarioStepStatus.PENDING
    error: Optional[str] = None
