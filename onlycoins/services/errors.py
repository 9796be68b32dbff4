"""
Error taxonomy shared by the generation services.

Services raise these; the routes translate them into structured
``{"error": ...}`` responses with a fixed status code per class.
"""


class GenerationServiceError(Exception):
    """Base exception for generation service errors."""
    pass


class InvalidInputError(GenerationServiceError):
    """Raised when the caller's input is missing, empty or all whitespace."""
    pass


class UpstreamGenerationError(GenerationServiceError):
    """Raised when an upstream model answers with an error or an unusable result."""
    pass


class UpstreamConnectionError(UpstreamGenerationError):
    """Raised when an upstream model cannot be reached or is not configured."""
    pass


class MalformedGenerationOutputError(GenerationServiceError):
    """Raised when the generated text does not parse as the expected JSON."""
    pass


class RetriesExhaustedError(GenerationServiceError):
    """Raised when every image generation attempt has failed."""

    def __init__(self, attempts: int, message: str = "Failed to generate an image after multiple attempts."):
        super().__init__(message)
        self.attempts = attempts
