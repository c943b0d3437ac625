from fastapi import APIRouter, HTTPException

from api.src.models.run import PipelineValidateRequest, PipelineValidateResponse
from api.src.services.pipeline_parser import (
    parse_pipeline_config,
    parse_pipeline_dict,
    PipelineConfigError,
)

router = APIRouter(prefix="/pipelines", tags=["pipelines"])

@router.post("/validate", response_model=PipelineValidateResponse)
async def validate_pipeline(request: PipelineValidateRequest):
    """Validate a pipeline definition given as YAML/JSON text or as a dict."""
    try:
        if request.content is not None:
            pipeline = parse_pipeline_config(request.content)
        elif request.pipeline is not None:
            pipeline = parse_pipeline_dict(request.pipeline)
        else:
            raise PipelineConfigError("Either 'content' or 'pipeline' is required")
    except PipelineConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return PipelineValidateResponse(
        valid=True,
        total_steps=pipeline.total_steps(),
        pipeline=pipeline.model_dump(by_alias=True),
    )
