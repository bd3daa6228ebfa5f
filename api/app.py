"""
Upload API - accepts a video URL and pushes it into the ad-video ingestion
endpoint. Runs on port 3000 by default.

Run with: uvicorn api.app:app --host 0.0.0.0 --port 3000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

import config
from api.common import (
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
    check_health,
    get_real_ip,
    rate_limit_exceeded_handler,
)
from api.errors import error_body, is_client_error
from api.metrics import METRICS_CONTENT_TYPE, get_metrics, init_app_info
from api.schemas import ErrorResponse, UploadVideoRequest, UploadVideoResponse
from code_version import CODE_VERSION, get_version_info
from ingest.errors import UploadError
from ingest.http_client import ClientConfig, create_http_client
from ingest.models import UploadPolicy, UploadRequest
from ingest.orchestrator import RetryOrchestrator

logger = logging.getLogger(__name__)

STILL_PROCESSING_WARNING = "Video still processing"


def create_app(
    client_config: Optional[ClientConfig] = None,
    policy: Optional[UploadPolicy] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        client_config: Outbound timeouts and pool limits (defaults from config.py)
        policy: Upload limits and delays (defaults from config.py)
        transport: Optional httpx transport for the outbound client
    """
    client_config = client_config or ClientConfig()
    policy = policy or UploadPolicy()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Own the shared outbound HTTP client for the application lifetime."""
        if not config.get_access_token():
            logger.error("FACEBOOK_ACCESS_TOKEN is not set - uploads will be rejected")
        if config.RATE_LIMIT_ENABLED and config.RATE_LIMIT_STORAGE_URL == "memory://":
            logger.warning(
                "Rate limiting is using in-memory storage. "
                "For deployments with multiple instances, configure Redis: "
                "ADVIDEO_RATE_LIMIT_STORAGE_URL=redis://localhost:6379"
            )
        init_app_info(CODE_VERSION)
        app.state.http_client = create_http_client(client_config, transport=transport)
        logger.info(f"Ad video upload service ready (graph api {config.GRAPH_API_VERSION})")
        yield
        await app.state.http_client.aclose()

    app = FastAPI(
        title="Ad Video Ingest",
        description="Chunked video uploads into the ad-video ingestion endpoint",
        lifespan=lifespan,
    )
    app.state.client_config = client_config
    app.state.upload_policy = policy

    limiter = Limiter(
        key_func=get_real_ip,
        storage_uri=config.RATE_LIMIT_STORAGE_URL,
        enabled=config.RATE_LIMIT_ENABLED,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Report malformed bodies as 400 {error, details} instead of FastAPI's 422."""
        errors = exc.errors()
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", ""),
            }
            for err in errors
        ]
        missing = any(err.get("type") in ("missing", "string_too_short") for err in errors)
        return JSONResponse(
            status_code=400,
            content={
                "error": "Missing video_url or ad_account_id" if missing else "Invalid request body",
                "details": details,
            },
        )

    @app.post(
        "/facebook/upload-video",
        response_model=UploadVideoResponse,
        response_model_exclude_none=True,
        responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    @limiter.limit(config.RATE_LIMIT_UPLOAD)
    async def upload_video(request: Request, data: UploadVideoRequest):
        """
        Upload a video from a URL and wait for platform processing.

        Returns the video id, with a warning when processing was not
        confirmed within the poll budget.
        """
        access_token = config.get_access_token()
        if not access_token:
            return JSONResponse(
                status_code=500,
                content={"error": "Server misconfigured", "details": "FACEBOOK_ACCESS_TOKEN is not set"},
            )

        orchestrator = RetryOrchestrator(
            request.app.state.http_client,
            access_token,
            client_config=request.app.state.client_config,
            policy=request.app.state.upload_policy,
        )
        upload_request = UploadRequest(source_url=data.video_url, account_id=data.ad_account_id)
        request_id = getattr(request.state, "request_id", None)

        try:
            result = await orchestrator.upload(upload_request)
        except UploadError as e:
            status_code = 400 if is_client_error(e) else 500
            logger.error(f"Upload rejected/failed ({status_code}) [request_id={request_id}]: {e.message}")
            return JSONResponse(status_code=status_code, content=error_body(e))

        if result.processing_complete:
            return UploadVideoResponse(video_id=result.video_id)
        return UploadVideoResponse(video_id=result.video_id, warning=STILL_PROCESSING_WARNING)

    @app.get("/health")
    async def health_check():
        """Liveness plus configuration sanity. Returns 503 if uploads cannot work."""
        result = check_health()
        return JSONResponse(
            status_code=result["status_code"],
            content={
                "status": "healthy" if result["healthy"] else "unhealthy",
                "checks": result["checks"],
                "version": get_version_info(),
            },
        )

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics in text exposition format."""
        return Response(content=get_metrics(), media_type=METRICS_CONTENT_TYPE)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    uvicorn.run(app, host=config.HOST, port=config.PORT)
