"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fpa.config import settings
from fpa.database import init_models
from fpa.scenarios import routes as scenario_routes
from fpa.scenarios.errors import ScenarioError, ScenarioNotFoundError
from fpa.seed import routes as seed_routes

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    logger.info(f"FPA API started ({settings.APP_ENV})")
    yield


# Create FastAPI app
app = FastAPI(
    title="FPA API",
    description="Financial planning - scenario simulation, sensitivity and comparison",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ScenarioError)
async def scenario_error_handler(request: Request, exc: ScenarioError):
    """Not-found errors map to 404, lifecycle and input errors to 400."""
    status_code = 404 if isinstance(exc, ScenarioNotFoundError) else 400
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# Include routers
app.include_router(scenario_routes.router, prefix=f"{settings.API_V1_PREFIX}/scenarios", tags=["Scenarios"])
app.include_router(seed_routes.router, prefix=settings.API_V1_PREFIX, tags=["Seed"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "FPA API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fpa.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
