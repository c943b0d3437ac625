"""
Per-run context threaded through the pipeline walk.
"""

from dataclasses import dataclass, replace
from typing import Optional

@dataclass(frozen=True)
class RunContext:
    time_start: str
    loop_index: Optional[int] = None
    loop_total: Optional[int] = None

    def for_iteration(self, index: int, total: int) -> "RunContext":
        """Context for one loop iteration. The run start label is kept."""
        return replace(self, loop_index=index, loop_total=total)
