"""
In-process fake of the device side of the command channel.
"""

import asyncio
import itertools
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from runner.src.channel.base import CommandChannel
from runner.src.models.messages import (
    RUN_HOST_COMMAND,
    HOST_COMMAND_RESULT,
    HOST_COMMAND_DEBUG,
    WAIT_FOR_IMAGE_MATCH,
    WAIT_FOR_IMAGE_RESULT,
    START_BACKGROUND_LOG,
    START_BACKGROUND_LOG_RESULT,
    STOP_BACKGROUND_LOG,
    STOP_BACKGROUND_LOG_RESULT,
)
from runner.src.models.pipeline import Pipeline

TEST_TIMEOUT = 0.2

class FakeDevice(CommandChannel):
    """
    Answers requests the way the device agent does.

    Commands reply with outputs[command] (default "ok") unless listed in
    `silent`. Image matches pop results from `image_results`, succeeding
    once the list is empty.
    """

    def __init__(self, outputs: Optional[Dict[str, str]] = None):
        super().__init__()
        self.is_connected = True
        self.outputs: Dict[str, str] = outputs or {}
        self.silent: Set[str] = set()
        self.image_results: List[Dict[str, Any]] = []
        self.log_start_ok = True
        self.on_command: Optional[Callable[[str], None]] = None

        self.commands: List[str] = []
        self.emitted: List[Tuple[str, Dict[str, Any]]] = []
        self._log_ids = itertools.count(1)

    @property
    def connected(self) -> bool:
        return self.is_connected

    def requests(self, event: str) -> List[Dict[str, Any]]:
        return [data for name, data in self.emitted if name == event]

    async def emit(self, event: str, data: Dict[str, Any]):
        self.emitted.append((event, data))

        if event == RUN_HOST_COMMAND:
            command = data["command"]
            self.commands.append(command)
            if self.on_command:
                self.on_command(command)
            if command in self.silent:
                return
            request_id = data["requestId"]
            self._reply(HOST_COMMAND_DEBUG, {"requestId": request_id, "message": "Exec completed. Success: true"})
            self._reply(HOST_COMMAND_RESULT, {
                "requestId": request_id,
                "success": True,
                "output": self.outputs.get(command, "ok"),
            })

        elif event == WAIT_FOR_IMAGE_MATCH:
            if self.image_results:
                result = self.image_results.pop(0)
            else:
                result = {"success": True, "confidence": 0.97}
            self._reply(WAIT_FOR_IMAGE_RESULT, result)

        elif event == START_BACKGROUND_LOG:
            if self.log_start_ok:
                log_id = f"log_{next(self._log_ids)}"
                self._reply(START_BACKGROUND_LOG_RESULT, {"success": True, "logId": log_id, "filePath": data["filename"]})
            else:
                self._reply(START_BACKGROUND_LOG_RESULT, {"success": False, "error": "spawn failed"})

        elif event == STOP_BACKGROUND_LOG:
            self._reply(STOP_BACKGROUND_LOG_RESULT, {"success": True, "logId": data["logId"]})

    def _reply(self, event: str, data: Dict[str, Any]):
        asyncio.get_running_loop().call_soon(self.deliver, event, data)

def build_pipeline(items: List[Dict[str, Any]], name: str = "Test Pipeline") -> Pipeline:
    return Pipeline.model_validate({"id": "pipeline_1", "name": name, "items": items})

def block(node_id: str, block_id: str, **options) -> Dict[str, Any]:
    return {"id": node_id, "type": "block", "blockId": block_id, **options}

def loop(node_id: str, count: int, children: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"id": node_id, "type": "loop", "loopCount": count, "children": children}

def conditional(node_id: str, children, else_children=None, condition=None) -> Dict[str, Any]:
    return {
        "id": node_id,
        "type": "conditional",
        "condition": condition or {"type": "last_step_success"},
        "children": children,
        "elseChildren": else_children or [],
    }
