"""
Placeholder substitution for command templates.
"""

import re
from datetime import datetime
from typing import Optional

from runner.src.models.context import RunContext

TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M-%S"

PLACEHOLDER_PATTERN = re.compile(r"\$\((loop_total|loop_index|time_current|time_start)\)")

def format_timestamp(moment: Optional[datetime] = None) -> str:
    """Local time as YYYY-MM-DD-HH-mm-ss."""
    return (moment or datetime.now()).strftime(TIMESTAMP_FORMAT)

def resolve_variables(
    template: str,
    context: RunContext,
    now: Optional[datetime] = None,
) -> str:
    """
    Substitute run-time placeholders into a command template.

    Supported: $(loop_total), $(loop_index), $(time_current), $(time_start).
    Substitution is a single pass, so values are never re-expanded, and
    unknown placeholders are left as they are.
    """
    values = {
        "loop_total": str(context.loop_total or 1),
        "loop_index": str(context.loop_index or 1),
        "time_current": format_timestamp(now),
        "time_start": context.time_start,
    }
    return PLACEHOLDER_PATTERN.sub(lambda m: values[m.group(1)], template)
