# Services package - External model integrations
from onlycoins.services.images import ImageGeneratorService, WorkersAIImageModel
from onlycoins.services.posts import PostGeneratorService

__all__ = [
    "ImageGeneratorService",
    "WorkersAIImageModel",
    "PostGeneratorService",
]
