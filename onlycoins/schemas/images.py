"""
Image generation schemas.
"""

from pydantic import BaseModel, Field


class ImageGenerateResponse(BaseModel):
    """Response schema for a successfully generated image."""

    dataURI: str = Field(
        ...,
        description="Base64 encoded JPEG image as a data URI",
        examples=["data:image/jpeg;charset=utf-8;base64,/9j/4AAQSkZJRg..."],
    )
