# FILE: cbt_engine/app.py
"""
FastAPI application entry point for the CBT exam attempt engine
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cbt_engine import __version__
from cbt_engine.config import get_settings
from cbt_engine.exceptions import CBTEngineError
from cbt_engine.routes import attempts, health, results
from cbt_engine.services.attempt_engine import get_engine

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown"""
    logger.info(f"Starting CBT attempt engine v{__version__} ({settings.environment})")

    engine = get_engine()

    yield

    # Shutdown: no countdown may outlive the process loop
    engine.shutdown()
    logger.info("Shutting down CBT attempt engine")


app = FastAPI(
    title="CBT Attempt Engine API",
    description="Timed exam attempts with reproducible ordering and confidence-gated scoring",
    version=__version__,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CBTEngineError)
async def engine_exception_handler(request: Request, exc: CBTEngineError):
    logger.warning(f"Engine error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=409,
        content={"error": "Attempt engine error", "detail": str(exc)}
    )


# Exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


# Include routers
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(attempts.router, prefix="/attempts", tags=["attempts"])
app.include_router(results.router, prefix="/results", tags=["results"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "CBT Attempt Engine",
        "version": __version__,
        "status": "active"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cbt_engine.app:app",
        host=settings.backend_host,
        port=settings.backend_port,
        reload=settings.environment == "development"
    )
