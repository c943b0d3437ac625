"""
Block definitions and the built-in block catalog.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Iterable
from enum import Enum

class BlockKind(str, Enum):
    PREDEFINED = "predefined"
    CUSTOM = "custom"
    SPECIAL = "special"

class SpecialBlockId(str, Enum):
    SLEEP = "sleep"
    WAIT_FOR_IMAGE = "wait_for_image"
    LOG_START = "log_start"
    LOG_STOP = "log_stop"

SPECIAL_BLOCK_IDS = {b.value for b in SpecialBlockId}

class Block(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    commands: List[str] = []
    kind: BlockKind = Field(default=BlockKind.CUSTOM, alias="type")
    log_command: Optional[str] = Field(default=None, alias="logCommand")
    log_file_name: Optional[str] = Field(default=None, alias="logFileName")
    stop_command: Optional[str] = Field(default=None, alias="stopCommand")

    class Config:
        populate_by_name = True

PREDEFINED_BLOCKS: List[Block] = [
    Block(
        id="connect_block",
        name="Connect",
        kind=BlockKind.PREDEFINED,
        description="Connect to device",
        commands=[
            "sdb disconnect",
            "sdb connect 192.168.250.250",
            "sdb remount",
        ],
    ),
    Block(
        id="enter_block",
        name="Enter",
        kind=BlockKind.PREDEFINED,
        description="Press Enter",
        commands=["sdb vk_send 36"],
    ),
    Block(id="back_block", name="Back", kind=BlockKind.PREDEFINED, description="Press Back"),
    Block(id="left_block", name="Left", kind=BlockKind.PREDEFINED, description="Press Left"),
    Block(id="right_block", name="Right", kind=BlockKind.PREDEFINED, description="Press Right"),
    Block(id="up_block", name="Up", kind=BlockKind.PREDEFINED, description="Press Up"),
    Block(id="down_block", name="Down", kind=BlockKind.PREDEFINED, description="Press Down"),
    Block(
        id="home_block",
        name="Home",
        kind=BlockKind.PREDEFINED,
        description="Press Home",
        commands=["sdb shell input keyevent 3"],
    ),
]

SPECIAL_BLOCKS: List[Block] = [
    Block(
        id=SpecialBlockId.SLEEP.value,
        name="Sleep",
        kind=BlockKind.SPECIAL,
        description="Wait for a fixed duration",
    ),
    Block(
        id=SpecialBlockId.WAIT_FOR_IMAGE.value,
        name="Wait For Image",
        kind=BlockKind.SPECIAL,
        description="Wait until a template image appears on screen",
    ),
    Block(
        id=SpecialBlockId.LOG_START.value,
        name="Log Start",
        kind=BlockKind.SPECIAL,
        description="Start capturing a background log",
        log_command="sdb dlogutil -v kerneltime",
        log_file_name="log_$(time_current).txt",
    ),
    Block(
        id=SpecialBlockId.LOG_STOP.value,
        name="Log Stop",
        kind=BlockKind.SPECIAL,
        description="Stop all background logs",
    ),
]

def default_catalog() -> List[Block]:
    """Predefined blocks followed by the special blocks."""
    return [b.model_copy() for b in PREDEFINED_BLOCKS + SPECIAL_BLOCKS]

def merge_catalog(loaded: Iterable[Block]) -> List[Block]:
    """
    Merge user-loaded blocks over the built-in catalog.
    Loaded versions of built-in ids win; custom blocks are appended.
    """
    loaded = list(loaded)
    loaded_map: Dict[str, Block] = {b.id: b for b in loaded}

    merged = [loaded_map.get(b.id, b) for b in PREDEFINED_BLOCKS]
    merged += [loaded_map.get(b.id, b) for b in SPECIAL_BLOCKS]
    merged += [b for b in loaded if b.kind == BlockKind.CUSTOM]
    return merged
