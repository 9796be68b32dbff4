"""
Image generation API routes.

The frontend calls this endpoint directly from the browser, so every
response (preflight, success and failure) carries the same CORS headers.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from onlycoins.config import get_settings
from onlycoins.schemas.common import ErrorResponse
from onlycoins.schemas.images import ImageGenerateResponse
from onlycoins.services.errors import RetriesExhaustedError
from onlycoins.services.images import ImageGeneratorService, get_image_generator_service

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter(tags=["images"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


@router.options("/images", include_in_schema=False)
async def images_preflight() -> Response:
    """Answer CORS preflight requests."""
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@router.api_route(
    "/images",
    methods=["GET", "POST"],
    responses={
        200: {
            "description": "Generated image as a data URI",
            "model": ImageGenerateResponse,
        },
        500: {
            "description": "Every generation attempt failed",
            "model": ErrorResponse,
        },
    },
    summary="Generate a themed image",
)
async def generate_image(
    image_service: Annotated[ImageGeneratorService, Depends(get_image_generator_service)],
    name: Annotated[Optional[str], Query(description="Theme of the image")] = None,
) -> JSONResponse:
    """
    Generate an image for the theme given in the ``name`` query parameter.

    Args:
        image_service: Injected image generator
        name: Theme; missing or empty falls back to IMAGE_DEFAULT_THEME

    Returns:
        JSONResponse with ``dataURI`` or an ErrorResponse body
    """
    theme = name or get_settings().IMAGE_DEFAULT_THEME
    logger.info(f"Received image generation request. Theme: '{theme}'")

    try:
        data_uri = await image_service.generate_image(theme)
    except RetriesExhaustedError as e:
        logger.error(f"Image generation failed after {e.attempts} attempts")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error=str(e)).model_dump(),
            headers=CORS_HEADERS,
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=ImageGenerateResponse(dataURI=data_uri).model_dump(),
        headers=CORS_HEADERS,
    )
