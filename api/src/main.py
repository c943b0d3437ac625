import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.src.config import get_settings
from api.src.routes import health_router, pipelines_router, runs_router

settings = get_settings()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting BlockRunner API")
    yield
    # Shutdown
    logger.info("Shutting down BlockRunner API")

app = FastAPI(
    title="BlockRunner",
    description="Device automation pipeline runner",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router)
app.include_router(pipelines_router, prefix="/api")
app.include_router(runs_router, prefix="/api")

@app.get("/")
async def root():
    return {
        "name": "BlockRunner",
        "version": "0.1.0",
        "docs": "/docs"
    }

def run():
    """Entry point for the API server."""
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
