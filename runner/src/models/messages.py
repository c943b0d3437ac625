"""
Wire messages for the device channel and the run queue.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from runner.src.models.block import Block
from runner.src.models.pipeline import Pipeline

# Device channel events
RUN_HOST_COMMAND = "run_host_command"
HOST_COMMAND_RESULT = "host_command_result"
HOST_COMMAND_DEBUG = "host_command_debug"
WAIT_FOR_IMAGE_MATCH = "wait_for_image_match"
WAIT_FOR_IMAGE_RESULT = "wait_for_image_result"
START_BACKGROUND_LOG = "start_background_log"
START_BACKGROUND_LOG_RESULT = "start_background_log_result"
STOP_BACKGROUND_LOG = "stop_background_log"
STOP_BACKGROUND_LOG_RESULT = "stop_background_log_result"

# Redis keys
RUN_QUEUE = "blockrunner:runs"
RUN_STATUS = "blockrunner:status"
RUN_STATS = "blockrunner:stats"
RUN_LOGS_PREFIX = "blockrunner:logs:"
RUN_STOP_PREFIX = "blockrunner:stop:"

class _Message(BaseModel):
    class Config:
        populate_by_name = True

class CommandRequest(_Message):
    command: str
    request_id: str = Field(alias="requestId")

class CommandResult(_Message):
    request_id: str = Field(alias="requestId")
    output: str = ""
    success: Optional[bool] = None

class CommandDebug(_Message):
    request_id: str = Field(alias="requestId")
    message: str = ""

class ImageMatchRequest(_Message):
    template_path: str = Field(alias="templatePath")
    timeout_ms: int = Field(alias="timeoutMs")
    request_id: Optional[str] = Field(default=None, alias="requestId")

class ImageMatchResult(_Message):
    success: bool
    message: Optional[str] = None
    confidence: Optional[float] = None
    request_id: Optional[str] = Field(default=None, alias="requestId")

class LogStartRequest(_Message):
    command: Optional[str] = None
    filename: str

class LogStartResult(_Message):
    success: bool
    log_id: Optional[str] = Field(default=None, alias="logId")
    file_path: Optional[str] = Field(default=None, alias="filePath")
    error: Optional[str] = None

class LogStopRequest(_Message):
    log_id: str = Field(alias="logId")
    stop_command: Optional[str] = Field(default=None, alias="stopCommand")

class LogStopResult(_Message):
    success: bool = True
    log_id: Optional[str] = Field(default=None, alias="logId")
    message: Optional[str] = None

class RunJob(BaseModel):
    run_id: str
    pipeline: Pipeline
    blocks: List[Block] = []
    queued_at: str = Field(default_factory=lambda: datetime.utcnow().isoformat())
