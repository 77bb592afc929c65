"""FastAPI application factory."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rugbatch.api.middleware import rugbatch_error_handler
from rugbatch.api.routes import batches, images, logs, pipelines, upload
from rugbatch.models.errors import RugBatchError


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="rugbatch",
        description="Batch generation of rug room-scene images",
        version="0.1.0",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handlers
    app.add_exception_handler(RugBatchError, rugbatch_error_handler)

    # Routes
    app.include_router(upload.router)
    app.include_router(pipelines.router)
    app.include_router(batches.router)
    app.include_router(images.router)
    app.include_router(logs.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": "0.1.0"}

    return app


app = create_app()
