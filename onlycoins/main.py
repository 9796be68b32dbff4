"""
OnlyCoins Backend - Main Application Entry Point.

This FastAPI application serves the OnlyCoins social feed frontend.
It coordinates between:
1. Frontend (Next.js) - requests posts and images
2. Chat model (Groq) - generates crypto feed posts as JSON
3. Image model (Workers AI) - generates themed post images

No state is kept between requests.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from onlycoins.config import get_settings
from onlycoins.routes.images import router as images_router
from onlycoins.routes.posts import router as posts_router
from onlycoins.schemas.common import ErrorResponse

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

# Configure logging format
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events.
    """
    # Startup
    settings = get_settings()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Log configuration status (without exposing secrets)
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"Chat model: {settings.CHAT_MODEL} at {settings.CHAT_BASE_URL}")
    logger.info(f"Chat API key configured: {settings.chat_configured}")
    logger.info(f"Image model: {settings.IMAGE_MODEL}")
    logger.info(f"Workers AI configured: {settings.image_configured}")
    logger.info(
        f"Image attempts: {settings.IMAGE_MAX_ATTEMPTS}, "
        f"prompt strategy: {settings.IMAGE_PROMPT_STRATEGY}"
    )
    logger.info(f"CORS origins: {settings.cors_origins_list}")

    # Warn about missing configuration
    if not settings.chat_configured:
        logger.warning(
            "⚠️  GROQ_API_KEY is not configured. "
            "Set this in your .env file before requesting posts."
        )
    if not settings.image_configured:
        logger.warning(
            "⚠️  CLOUDFLARE_ACCOUNT_ID / CLOUDFLARE_API_TOKEN are not configured. "
            "Set these in your .env file before requesting images."
        )

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Application shutdown")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

# Get settings for app configuration
settings = get_settings()

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
## OnlyCoins Backend

AI-generated crypto posts and images for the OnlyCoins feed.

### Key Endpoints

- `POST /api/posts` - Generate feed posts from an instruction
- `GET /images?name=<theme>` - Generate a themed image (data URI)
- `GET /api/health` - Health check
- `GET /api/health/ready` - Readiness check

### Configuration

The chat model (Groq) and image model (Workers AI) are configured via
environment variables. See `onlycoins/config.py`.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# =============================================================================
# MIDDLEWARE
# =============================================================================

class PathExemptCORSMiddleware(CORSMiddleware):
    """
    CORSMiddleware that leaves some paths alone.

    Exempt routes set their own fixed CORS headers on every response,
    preflight included.
    """

    def __init__(self, app, exempt_paths=(), **kwargs):
        super().__init__(app, **kwargs)
        self.exempt_paths = frozenset(exempt_paths)

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["path"] in self.exempt_paths:
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


# Add CORS middleware to allow frontend requests
app.add_middleware(
    PathExemptCORSMiddleware,
    exempt_paths=["/images"],
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return request validation failures in the standard error shape."""
    logger.info(f"Invalid request body for {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="Invalid request body").model_dump(),
    )


# =============================================================================
# ROUTES
# =============================================================================

app.include_router(posts_router)
app.include_router(images_router)


# Root endpoint
@app.get("/", include_in_schema=False)
async def root():
    """Root endpoint - points at the API documentation."""
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/api/health",
    }


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    # Run the application with uvicorn
    # In production, use: uvicorn onlycoins.main:app --host 0.0.0.0 --port 8000
    uvicorn.run(
        "onlycoins.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
