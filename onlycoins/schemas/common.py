"""Schemas shared by every route."""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standard error response schema.

    Every failure path of the API returns this exact shape.
    """

    error: str = Field(..., description="Human-readable error message")
