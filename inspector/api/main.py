"""
FastAPI Application - Main entry point.
Exposes page inspection over HTTP.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core.config import settings
from ..inspection import InspectionService
from ..utils.log import log

from .routes import inspect


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Creates the inspection service shared by all requests.
    """
    if getattr(app.state, "inspection_service", None) is None:
        app.state.inspection_service = InspectionService()

    log("api", "Experiment Configuration Inspector API ready")

    yield

    log("api", "Shutting down...")


def create_app(service: InspectionService | None = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        service: Inspection service to use (created at startup when omitted)

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Experiment Configuration Inspector",
        description=(
            "Inspects a web page and reports its experimentation and tracking "
            "configuration: Optimizely experiments, Shopify state and GA4/GTM tags."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.inspection_service = service

    # CORS middleware for the inspector frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["POST", "OPTIONS", "GET"],
        allow_headers=["Content-Type"],
    )

    app.include_router(inspect.router, prefix="/api/inspect", tags=["Inspection"])

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Experiment Configuration Inspector",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
            "sources": ["LiveRuntimeState", "RestApi", "SnippetScript", "JsonDatafile"],
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


# Create app instance
app = create_app()


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
