"""
FastAPI application entry point.

Run with: uvicorn taletype.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from taletype import __version__
from taletype.core.config import settings
from taletype.core.logging import configure_logging, get_logger, bind_context, clear_context
from taletype.api.dependencies import get_game_engine
from taletype.api.routes import game, health
from taletype.api.exception_handlers import setup_exception_handlers
from taletype.llm.client import DEFAULTS_MAP
from taletype.llm.image_client import IMAGE_DEFAULTS

# Configure logging before anything else
configure_logging()
log = get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Generates a UUID4 request_id for each incoming request
    - Binds it to structlog context for all logs in that request
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        """Process request and add correlation ID."""
        request_id = str(uuid.uuid4())
        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


# =============================================================================
# Startup checks
# =============================================================================

PROVIDER_KEYS = {
    "gemini": ("gemini_api_key", "GEMINI_API_KEY"),
    "openai": ("openai_api_key", "OPENAI_API_KEY"),
    "anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
}


def validate_api_keys() -> list[str]:
    """
    Validate that required API keys are configured.

    Every role (story, quest, scene, image) resolves to a provider, either
    its default or the environment override, and that provider's key must
    be present.

    Returns:
        List of error messages (empty if all keys are valid)

    Raises:
        RuntimeError: If any required API key is missing
    """
    errors = []

    in_use = {
        role: getattr(settings, f"llm_{role}_provider", None) or defaults["provider"]
        for role, defaults in DEFAULTS_MAP.items()
    }
    in_use["image"] = settings.image_provider or IMAGE_DEFAULTS["provider"]

    for role, provider in in_use.items():
        if provider not in PROVIDER_KEYS:
            errors.append(
                f"Unknown provider '{provider}' for {role}. "
                f"Supported providers: {', '.join(PROVIDER_KEYS.keys())}"
            )
            continue

        attr_name, env_var = PROVIDER_KEYS[provider]
        if not getattr(settings, attr_name, None):
            errors.append(
                f"API key missing: {env_var} is required for {provider} "
                f"(used by {role} client). Set it in .env file."
            )

    if errors:
        error_msg = "API Key Validation Failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise RuntimeError(error_msg)

    log.info("api_keys_validated", **in_use)

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Validates provider keys on startup and lets outstanding oracle calls
    finish on shutdown.
    """
    log.info("application_starting", debug=settings.debug)

    validate_api_keys()

    log.info("application_started")

    yield

    log.info("application_shutting_down")
    if get_game_engine.cache_info().currsize:
        await get_game_engine().shutdown()


# Create FastAPI application
app = FastAPI(
    title="TaleType",
    description="Type a story as it is written, one segment at a time",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware for development
if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(CorrelationIDMiddleware)

setup_exception_handlers(app)

app.include_router(health.router, tags=["system"])
app.include_router(game.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {"name": "TaleType", "version": __version__, "status": "running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "taletype.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
