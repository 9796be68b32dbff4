"""
Post generation schemas.

This module contains the Pydantic models for the post generation endpoint
and the shape of a generated crypto post.
"""

from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# FRONTEND REQUEST SCHEMA
# =============================================================================

class PostsGenerateRequest(BaseModel):
    """
    Request schema for post generation from the frontend.

    ``input`` is deliberately optional here: a missing or blank value is
    rejected by the service with the "Input is required" error rather than
    by request validation.
    """

    input: Optional[str] = Field(
        None,
        description="Free-text instruction for the posts to generate",
        examples=["Generate 5 posts about Solana and Dogecoin"],
    )


# =============================================================================
# GENERATED POST SCHEMA
# =============================================================================

class CryptoPost(BaseModel):
    """
    Schema of a single generated feed post.

    The model is asked to return a JSON array of these objects:
    {
        "id": "1",
        "imageUrl": "/placeholder.svg?height=600&width=800",
        "caption": "Just bought more #Bitcoin during this dip!",
        "crypto": "Bitcoin",
        "timestamp": "2h ago",
        "likes": 3452,
        "comments": 128,
        "shares": 76,
        "username": "BitcoinBaron",
        "userHandle": "bitcoin_baron",
        "verified": true,
        "avatarUrl": "/placeholder.svg?height=40&width=40"
    }

    Only enforced when POSTS_STRICT_SCHEMA is enabled.
    """

    id: str
    imageUrl: str
    caption: str = Field(..., min_length=1)
    crypto: str
    timestamp: str
    likes: int = Field(..., ge=0)
    comments: int = Field(..., ge=0)
    shares: int = Field(..., ge=0)
    username: str
    userHandle: str
    verified: bool
    avatarUrl: str

    class Config:
        # Strict mode: reject extra fields
        extra = "forbid"
