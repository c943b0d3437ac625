from api.src.services.pipeline_parser import (
    parse_pipeline_config,
    parse_pipeline_dict,
    validate_block_refs,
    PipelineConfigError,
)
from api.src.services.queue import (
    enqueue_run,
    request_stop,
    get_run_status,
    get_run_stats,
    get_run_logs,
    get_queue_length,
)

__all__ = [
    "parse_pipeline_config",
    "parse_pipeline_dict",
    "validate_block_refs",
    "PipelineConfigError",
    "enqueue_run",
    "request_stop",
    "get_run_status",
    "get_run_stats",
    "get_run_logs",
    "get_queue_length",
]
