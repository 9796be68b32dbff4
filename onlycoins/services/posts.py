"""
Post Generation Service.

This module handles all communication with the hosted chat completion model.
It is responsible for:
1. Sending the post-schema system prompt and the user's instruction
2. Collecting the streamed completion into one string
3. Extracting and parsing the JSON payload from the text
"""

import json
import logging
import re
from typing import Any, Optional

import openai
from pydantic import ValidationError

from onlycoins.config import Settings, get_settings
from onlycoins.schemas.posts import CryptoPost
from onlycoins.services.errors import (
    InvalidInputError,
    MalformedGenerationOutputError,
    UpstreamConnectionError,
    UpstreamGenerationError,
)

# Configure logging
logger = logging.getLogger(__name__)

# First ```json fenced block, lazy so a second block is never swallowed
JSON_FENCE_PATTERN = re.compile(r"```json(.*?)```", re.DOTALL)


def extract_json_payload(text: str) -> str:
    """
    Return the JSON text embedded in a model response.

    The interior of the first ```json fenced block wins; without one the
    whole trimmed text is returned verbatim.
    """
    text = text.strip()
    match = JSON_FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return text


def _reject_constant(name: str) -> Any:
    """NaN, Infinity and -Infinity are not JSON and cannot be rendered back out."""
    raise ValueError(f"Invalid JSON constant: {name}")


class PostGeneratorService:
    """
    Service for generating crypto feed posts with a streaming chat model.

    A single upstream error or an unparseable response ends the call:
    there is no retry and no repair of the model output.
    """

    # The system prompt that describes the exact post schema to generate
    SYSTEM_PROMPT = """You are an AI that generates JSON-formatted cryptocurrency-related social media posts. Each post should include an `id`, `imageUrl`, `caption`, `crypto`, `timestamp`, `likes`, `comments`, `shares`, `username`, `userHandle`, `verified` status, and `avatarUrl`.

Follow this structure:
```json
{
  "id": "1",
  "imageUrl": "/placeholder.svg?height=600&width=800",
  "caption": "Just bought more #Bitcoin during this dip! 📉➡️📈 Remember, it's not about timing the market, it's about time IN the market. HODL strong, friends! 💎🙌 #Crypto #BTC #ToTheMoon",
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
```

### Guidelines:
1. **`id`**: A unique string-based identifier (e.g., "1", "2", "3", etc.).
2. **`imageUrl`**: A placeholder image with dimensions 600x800.
3. **`caption`**: A dynamic crypto-related post, including hashtags and emojis.
4. **`crypto`**: The associated cryptocurrency, such as "Bitcoin", "Ethereum", "Dogecoin", or "Solana".
5. **`timestamp`**: A relative time indicator like "2h ago", "5h ago", "1d ago", "3d ago".
6. **`likes`**: A random integer between 1,000 and 10,000.
7. **`comments`**: A random integer between 50 and 500.
8. **`shares`**: A random integer between 20 and 250.
9. **`username`**: A creative crypto-related name.
10. **`userHandle`**: A lowercase handle derived from the username, replacing spaces with underscores.
11. **`verified`**: A boolean value (`true` or `false`) indicating account verification.
12. **`avatarUrl`**: A placeholder image with dimensions 40x40.

Generate a JSON array containing multiple posts that match this format, ensuring variety in usernames, captions, and engagement metrics."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[Any] = None):
        """
        Initialize the post generator.

        Args:
            settings: Optional settings instance. If not provided, uses default settings.
            client: Optional AsyncOpenAI-compatible client. Built lazily when omitted.
        """
        self.settings = settings or get_settings()
        self._client = client

        if client is None and not self.settings.GROQ_API_KEY:
            logger.warning(
                "GROQ_API_KEY is not configured. "
                "Set GROQ_API_KEY in your .env file."
            )

    def _get_client(self):
        """Lazy-initialize the chat client so a missing key only fails on use."""
        if self._client is not None:
            return self._client
        if not self.settings.GROQ_API_KEY:
            raise UpstreamConnectionError(
                "GROQ_API_KEY is not configured. "
                "Please set GROQ_API_KEY in your .env file."
            )
        self._client = openai.AsyncOpenAI(
            api_key=self.settings.GROQ_API_KEY,
            base_url=self.settings.CHAT_BASE_URL,
            timeout=self.settings.CHAT_TIMEOUT,
            max_retries=0,
        )
        return self._client

    def _build_messages(self, user_input: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.SYSTEM_PROMPT},
            {"role": "user", "content": user_input},
        ]

    async def _collect_stream(self, stream: Any) -> str:
        """
        Concatenate the streamed completion fragments in arrival order.

        Chunks without choices or without delta content contribute nothing.
        """
        fragments: list[str] = []
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            fragments.append((delta.content if delta else None) or "")
        return "".join(fragments).strip()

    def _parse_json(self, text: str) -> Any:
        """
        Parse the JSON payload of a completion.

        Raises:
            MalformedGenerationOutputError: If the payload is not valid JSON
        """
        payload = extract_json_payload(text)
        try:
            return json.loads(payload, parse_constant=_reject_constant)
        except ValueError as e:
            # JSONDecodeError is a ValueError, as are NaN/Infinity rejections
            logger.error(f"Failed to parse generated JSON: {e}")
            raise MalformedGenerationOutputError(
                f"Model output is not valid JSON: {e}. "
                f"Raw response: {text[:500]}"
            ) from e

    def _validate_posts(self, data: Any) -> None:
        """Check the parsed value against the CryptoPost schema."""
        if not isinstance(data, list):
            raise MalformedGenerationOutputError(
                f"Expected a JSON array of posts, got {type(data).__name__}"
            )
        for index, item in enumerate(data):
            try:
                CryptoPost.model_validate(item)
            except ValidationError as e:
                raise MalformedGenerationOutputError(
                    f"Post {index} does not match the expected schema: {e}"
                ) from e

    async def generate_posts(self, user_input: Optional[str]) -> Any:
        """
        Generate feed posts from a free-text instruction.

        This method:
        1. Rejects empty input without calling the model
        2. Streams a chat completion with the post-schema system prompt
        3. Extracts the ```json block (or the whole text) and parses it

        Args:
            user_input: The caller's instruction, sent verbatim as the user message

        Returns:
            The parsed JSON value, normally a list of post objects

        Raises:
            InvalidInputError: If the input is missing or blank
            UpstreamConnectionError: If the chat service cannot be reached
            UpstreamGenerationError: If the chat service returns an error
            MalformedGenerationOutputError: If the output is not valid JSON
        """
        if user_input is None or not user_input.strip():
            raise InvalidInputError("Input is required")

        client = self._get_client()

        logger.info(
            f"Calling chat model {self.settings.CHAT_MODEL} at {self.settings.CHAT_BASE_URL}"
        )
        logger.debug(f"User input: {user_input[:200]}")

        try:
            stream = await client.chat.completions.create(
                model=self.settings.CHAT_MODEL,
                messages=self._build_messages(user_input),
                temperature=self.settings.CHAT_TEMPERATURE,
                top_p=self.settings.CHAT_TOP_P,
                max_tokens=self.settings.CHAT_MAX_TOKENS,
                stream=True,
                stop=None,
            )
            full_response = await self._collect_stream(stream)

        except openai.APIConnectionError as e:
            # Also covers APITimeoutError
            logger.error(f"Failed to reach chat model: {e}")
            raise UpstreamConnectionError(
                f"Failed to reach chat model at {self.settings.CHAT_BASE_URL}: {e}"
            ) from e

        except openai.APIStatusError as e:
            logger.error(f"Chat model returned status {e.status_code}: {e}")
            raise UpstreamGenerationError(
                f"Chat model returned status {e.status_code}: {e.message}"
            ) from e

        except openai.OpenAIError as e:
            logger.error(f"Chat model error: {e}")
            raise UpstreamGenerationError(f"Chat model error: {e}") from e

        logger.debug(f"Chat model raw response: {full_response}")

        # An empty completion fails to parse like any other non-JSON text
        data = self._parse_json(full_response)

        if self.settings.POSTS_STRICT_SCHEMA:
            self._validate_posts(data)

        logger.info(
            f"Successfully generated posts: "
            f"{len(data) if isinstance(data, list) else 1} item(s)"
        )
        return data


# Convenience function for dependency injection
async def get_post_generator_service() -> PostGeneratorService:
    """Get a PostGeneratorService instance for dependency injection."""
    return PostGeneratorService()
