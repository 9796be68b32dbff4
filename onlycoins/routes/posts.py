"""
Post generation API routes.

The backend forwards the user's instruction to the chat model and returns
the generated posts as a JSON array:
1. Frontend (request) -> Backend
2. Backend -> chat model (streamed completion)
3. Backend -> Frontend (parsed posts)
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from onlycoins.config import get_settings
from onlycoins.schemas.common import ErrorResponse
from onlycoins.schemas.posts import PostsGenerateRequest
from onlycoins.services.errors import (
    GenerationServiceError,
    InvalidInputError,
    MalformedGenerationOutputError,
    UpstreamConnectionError,
    UpstreamGenerationError,
)
from onlycoins.services.posts import PostGeneratorService, get_post_generator_service

# Configure logging
logger = logging.getLogger(__name__)

# Create router with prefix and tags
router = APIRouter(
    prefix="/api",
    tags=["posts"],
)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


@router.post(
    "/posts",
    status_code=status.HTTP_200_OK,
    responses={
        200: {
            "description": "Generated posts, normally a JSON array of CryptoPost objects",
        },
        400: {
            "description": "Input is missing or blank",
            "model": ErrorResponse,
        },
        502: {
            "description": "Chat model error or output that is not valid JSON",
            "model": ErrorResponse,
        },
        503: {
            "description": "Chat model unreachable or not configured",
            "model": ErrorResponse,
        },
    },
    summary="Generate feed posts",
)
async def generate_posts(
    request: PostsGenerateRequest,
    post_service: Annotated[PostGeneratorService, Depends(get_post_generator_service)],
):
    """
    Generate crypto feed posts from a free-text instruction.

    Args:
        request: The request containing the instruction
        post_service: Injected post generator

    Returns:
        JSONResponse with the parsed posts, or an ErrorResponse body
    """
    logger.info(
        f"Received post generation request. "
        f"Input length: {len(request.input or '')} chars"
    )

    try:
        posts = await post_service.generate_posts(request.input)

    except InvalidInputError as e:
        logger.info(f"Rejected post generation request: {e}")
        return error_response(status.HTTP_400_BAD_REQUEST, "Input is required")

    except UpstreamConnectionError as e:
        logger.error(f"Chat model connection error: {e}")
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, str(e))

    except UpstreamGenerationError as e:
        logger.error(f"Chat model response error: {e}")
        return error_response(status.HTTP_502_BAD_GATEWAY, str(e))

    except MalformedGenerationOutputError as e:
        logger.error(f"Chat model output could not be parsed: {e}")
        return error_response(status.HTTP_502_BAD_GATEWAY, str(e))

    except GenerationServiceError as e:
        logger.error(f"Post generation error: {e}")
        return error_response(status.HTTP_502_BAD_GATEWAY, str(e))

    return JSONResponse(status_code=status.HTTP_200_OK, content=posts)


@router.get(
    "/health",
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Check if the backend service is running.",
)
async def health_check():
    """
    Simple health check endpoint.

    Returns:
        dict: Health status
    """
    settings = get_settings()
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get(
    "/health/ready",
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Check if the upstream models are configured.",
)
async def readiness_check():
    """
    Readiness check that verifies configuration is loaded.

    Both the chat model and the image model must be configured.

    Returns:
        dict: Readiness status with configuration info
    """
    settings = get_settings()

    chat_configured = settings.chat_configured
    image_configured = settings.image_configured
    ready = chat_configured and image_configured

    warnings = []
    if not chat_configured:
        warnings.append("Set GROQ_API_KEY to enable post generation")
    if not image_configured:
        warnings.append(
            "Set CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN to enable image generation"
        )

    return {
        "status": "ready" if ready else "not_ready",
        "configuration": {
            "chat_configured": chat_configured,
            "chat_model": settings.CHAT_MODEL,
            "image_configured": image_configured,
            "image_model": settings.IMAGE_MODEL,
            "image_prompt_strategy": settings.IMAGE_PROMPT_STRATEGY,
        },
        "warnings": warnings,
    }
