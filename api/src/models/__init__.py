from api.src.models.run import (
    RunCreate,
    RunCreated,
    RunStatusResponse,
    RunLogsResponse,
    PipelineValidateRequest,
    PipelineValidateResponse,
)

__all__ = [
    "RunCreate",
    "RunCreated",
    "RunStatusResponse",
    "RunLogsResponse",
    "PipelineValidateRequest",
    "PipelineValidateResponse",
]
