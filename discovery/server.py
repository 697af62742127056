"""
FastAPI server for the Discovery Engine.

Exposes:
  - GET /discover - Filtered, scored and ranked candidate profiles
  - GET /health - Health check
  - GET /docs - Interactive API documentation (Swagger UI)
  - GET /openapi.json - OpenAPI schema
"""

from dotenv import load_dotenv
load_dotenv()

import asyncio
import sys
import time
from typing import Annotated, Any, Dict, Optional

from fastapi import FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import configuration (loads .env automatically)
from discovery.config import config, validate_config

# Import logging setup
from discovery.utils.logging_config import logger, setup_langsmith, setup_logging

from discovery.graphs.discovery import INTERNAL, NOT_FOUND, STORE_UNAVAILABLE, run_discovery
from discovery.models import DiscoverResponse, FilterSpec
from discovery.tools.llm_client import get_llm_provider_info
from discovery.tools.ranking_tools import clamp_pagination

# Setup logging
setup_logging(debug=config.DEBUG)
setup_langsmith()

# ============================================================
# VALIDATE CONFIGURATION AT STARTUP
# ============================================================
try:
    config_status = validate_config()
    logger.info("Configuration validated successfully")
    for key, value in config_status.items():
        logger.info(f"  {key}: {value}")
except ValueError as e:
    logger.error(f"Configuration error: {e}")
    sys.exit(1)

SERVICE_NAME = "Discovery Engine"
SERVICE_VERSION = "1.0.0"

ERROR_STATUS = {
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
    STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# ============================================================
# FASTAPI APPLICATION
# ============================================================
app = FastAPI(
    title=SERVICE_NAME,
    description="Candidate discovery for the dating platform: filtering, compatibility scoring and ranking",
    version=SERVICE_VERSION,
)

# ============================================================
# CORS CONFIGURATION
# ============================================================
origins = [
    "http://localhost:3000",  # Next.js dev
    "http://localhost:5173",  # Vite dev
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


# ============================================================
# MIDDLEWARE
# ============================================================
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """
    Middleware to track request processing time.

    Adds X-Process-Time header to all responses showing how long request took.
    """
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


def _check_token(authorization: Optional[str]) -> None:
    """Require the shared service token when one is configured."""

    if not config.AI_SERVICE_TOKEN:
        return
    if authorization != f"Bearer {config.AI_SERVICE_TOKEN}":
        logger.warning("Unauthorized request: invalid or missing token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


# ============================================================
# ROUTES
# ============================================================

@app.get("/health", tags=["System"])
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Called by load balancers and monitoring systems.
    """
    return {"status": "healthy", "llm": get_llm_provider_info()["primary_provider"]}


@app.get("/discover", response_model=DiscoverResponse, response_model_exclude_none=True, tags=["Discovery"])
async def discover(
    request: Request,
    x_user_id: Annotated[Optional[str], Header()] = None,
    authorization: Annotated[Optional[str], Header()] = None,
) -> DiscoverResponse:
    """
    Discover candidate profiles for the calling user.

    Filters come from query parameters (minAge, maxAge, gender, city,
    postcode, maxDistance, lifestyle lists, ...). ``page`` and ``limit`` are
    clamped to page >= 1 and 1 <= limit <= 100.
    ``pagination.total`` counts the ranked pool retrieved for this page, so
    it is a lower bound when more profiles match than were fetched.

    Raises:
        HTTPException: 401 without identity or token, 404 when the caller
                       has no profile, 503 when the profile store fails,
                       504 on timeout.
    """
    _check_token(authorization)
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )

    params = dict(request.query_params)
    filters = FilterSpec.from_query_params(params)
    page, limit = clamp_pagination(params.get("page", 1), params.get("limit", 20))

    start_time = time.time()
    try:
        result = await asyncio.wait_for(
            asyncio.to_thread(run_discovery, x_user_id, filters, page, limit),
            timeout=config.GRAPH_TIMEOUT,
        )
    except asyncio.TimeoutError:
        execution_time = time.time() - start_time
        logger.error(f"Discovery timed out after {execution_time:.2f}s")
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"Discovery timed out after {config.GRAPH_TIMEOUT}s",
        )

    execution_time = time.time() - start_time
    error_code = result.get("error_code")
    payload = result.get("payload")
    logger.info(
        "discover summary: user=%s page=%s limit=%s real=%s showcase=%s returned=%s success=%s time=%.2fs",
        x_user_id,
        page,
        limit,
        result.get("real_count", 0),
        result.get("showcase_count", 0),
        len(payload.users) if payload else 0,
        error_code is None,
        execution_time,
    )

    if error_code is not None or payload is None:
        raise HTTPException(
            status_code=ERROR_STATUS.get(error_code, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail=result.get("error") or "Discovery failed",
        )

    return DiscoverResponse(success=True, data=payload)


@app.get("/", tags=["System"])
async def root() -> Dict[str, str]:
    """Service information and where to find the documentation."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "docs": "/docs",
        "health": "/health",
    }


# ============================================================
# ERROR HANDLERS
# ============================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Render HTTP exceptions as {success, error, status_code}."""
    logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "status_code": exc.status_code,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.

    Never returns internal error details to the client; they go to the log.
    """
    logger.error(f"Unhandled exception: {str(exc)}")
    logger.exception("Full traceback:")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "status_code": 500,
        },
    )


# ============================================================
# STARTUP EVENTS
# ============================================================

@app.on_event("startup")
async def startup_event():
    """Log the effective configuration once the app is up."""
    logger.info("=" * 60)
    logger.info(f"{SERVICE_NAME} starting up")
    logger.info("=" * 60)
    logger.info(f"Firebase Project: {config.FIREBASE_PROJECT_ID}")
    logger.info(f"Debug Mode: {config.DEBUG}")
    logger.info(f"Graph Timeout: {config.GRAPH_TIMEOUT}s")
    logger.info(f"Max Candidates: {config.MAX_CANDIDATES}")
    logger.info(f"Showcase Fallback: {config.SHOWCASE_ENABLED}")
    logger.info(f"Score Cache: {config.SCORE_CACHE_ENABLED}")
    logger.info(f"Icebreaker LLM: {config.ICEBREAKERS_LLM_ENABLED}")
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"{SERVICE_NAME} shutting down")


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    """Run with: python -m uvicorn discovery.server:app --reload"""
    import uvicorn
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="info" if not config.DEBUG else "debug",
    )
