"""
Image prompt templates and selection strategies.

Each template has a single ``{theme}`` slot. The selector decides which
template an attempt uses, so retries can vary the prompt (random), walk the
catalog (round robin) or replay the same prompt (fixed).
"""

import itertools
import logging
import random
from abc import ABC, abstractmethod
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


IMAGE_PROMPT_TEMPLATES: tuple[str, ...] = (
    "Woman in a {theme} outfit, smiling.",
    "Stylish woman with a {theme} theme.",
    "Cute woman dressed in {theme} style.",
    "Elegant woman in a {theme} dress.",
    "Woman with {theme} vibes, posing.",
    "Chill woman wearing {theme}-inspired clothes.",
    "Trendy woman with a {theme} look.",
    "Fantasy woman with a {theme} touch.",
    "Woman with {theme} aesthetic, standing confidently.",
    "Cool woman rocking a {theme} outfit.",
    "Casual woman with a {theme} feel.",
    "Mysterious woman with {theme} details.",
    "Sci-fi woman with {theme} accessories.",
    "Woman in a dreamy {theme} setting.",
    "Sporty woman with a {theme} twist.",
    "Charming woman inspired by {theme}.",
    "Cozy woman in a {theme} hoodie.",
    "Daring woman in a {theme} uniform.",
    "Elegant woman in a {theme} kimono.",
    "Edgy woman with {theme} attitude.",
    "Cheerful woman in a {theme} festival outfit.",
    "Magical woman with a {theme} wand.",
    "Street-style woman in {theme} fashion.",
    "Classy woman in a {theme} gown.",
    "Laid-back woman with {theme} accessories.",
)


def render_prompt(template: str, theme: str) -> str:
    """Substitute the theme into a template."""
    return template.format(theme=theme)


class PromptSelector(ABC):
    """Strategy picking the template used by one generation attempt."""

    @abstractmethod
    def select(self, templates: Sequence[str], attempt: int) -> str:
        """
        Pick a template.

        Args:
            templates: The non-empty template catalog
            attempt: Zero-based attempt number within the current request
        """


class RandomPromptSelector(PromptSelector):
    """Uniform random choice; pass a seed for reproducible sequences."""

    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random(seed)

    def select(self, templates: Sequence[str], attempt: int) -> str:
        return self._rng.choice(templates)


class RoundRobinPromptSelector(PromptSelector):
    """Walks the catalog in order, wrapping around, across every call."""

    def __init__(self, start: int = 0):
        self._counter = itertools.count(start)

    def select(self, templates: Sequence[str], attempt: int) -> str:
        return templates[next(self._counter) % len(templates)]


class FixedPromptSelector(PromptSelector):
    """Always the same template, so retries replay the same prompt."""

    def __init__(self, index: int = 0):
        self.index = index

    def select(self, templates: Sequence[str], attempt: int) -> str:
        return templates[self.index % len(templates)]


def get_prompt_selector(strategy: str) -> PromptSelector:
    """
    Build the selector named by IMAGE_PROMPT_STRATEGY.

    Unknown names fall back to random selection.
    """
    strategy = strategy.lower().strip()
    if strategy == "round_robin":
        return RoundRobinPromptSelector()
    if strategy == "fixed":
        return FixedPromptSelector()
    if strategy != "random":
        logger.warning(f"Unknown prompt strategy '{strategy}', using random selection")
    return RandomPromptSelector()
