from api.src.routes.health import router as health_router
from api.src.routes.pipelines import router as pipelines_router
from api.src.routes.runs import router as runs_router

__all__ = ["health_router", "pipelines_router", "runs_router"]
