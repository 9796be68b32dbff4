# Schemas package - Pydantic models for request/response validation
from onlycoins.schemas.common import ErrorResponse
from onlycoins.schemas.images import ImageGenerateResponse
from onlycoins.schemas.posts import CryptoPost, PostsGenerateRequest

__all__ = [
    "ErrorResponse",
    "ImageGenerateResponse",
    "CryptoPost",
    "PostsGenerateRequest",
]
