"""FastAPI application factory."""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..errors import (
    ContentPolicyError,
    InvalidStatusError,
    NoValidScenesError,
    NotFoundError,
    ProviderQuotaError,
    StoryReelError,
    ValidationError,
)
from .config import WebConfig
from .dependencies import get_config
from .routers import files_router, projects_router


# Checked in order; the first matching class wins
ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ProviderQuotaError, status.HTTP_402_PAYMENT_REQUIRED),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InvalidStatusError, status.HTTP_400_BAD_REQUEST),
    (ContentPolicyError, status.HTTP_400_BAD_REQUEST),
    (NoValidScenesError, status.HTTP_400_BAD_REQUEST),
)


def status_for(error: StoryReelError) -> int:
    """HTTP status code for a workflow error."""
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def workflow_error_handler(request: Request, exc: StoryReelError) -> JSONResponse:
    if status_for(exc) >= 500:
        print(f"[API] ⚠️  {request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_for(exc), content={"error": exc.to_dict()})


def create_app(config: WebConfig | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Optional configuration. Uses defaults if not provided.

    Returns:
        The FastAPI application.
    """
    if config is None:
        config = get_config()

    app = FastAPI(
        title="StoryReel API",
        description="API for generating short vertical story videos",
        version="0.1.0",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StoryReelError, workflow_error_handler)

    # Include routers
    app.include_router(projects_router, prefix="/api/v1")
    app.include_router(files_router)

    @app.get("/health")
    def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    return app
