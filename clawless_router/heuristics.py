"""Regex heuristics for prompt ambiguity and entity extraction.

Both are exposed as small strategy classes so the analyzer and validator
can be handed a more precise implementation without changing their API.
"""

import re
from abc import ABC, abstractmethod

_HEDGING = re.compile(r"\b(maybe|might|could|should|probably)\b", re.IGNORECASE)
_DISJUNCTION = re.compile(r"\b(or|either)\b", re.IGNORECASE)
_SECOND_QUESTION = re.compile(r"\?.*\?", re.DOTALL)

_URL = re.compile(r"https?://[^\s<>\"')\]]+")
_CAPITALIZED = re.compile(r"\b[A-Z][a-zA-Z0-9_]*\b")

# Case-insensitive substrings that mark unfinished or invented output.
PLACEHOLDER_MARKERS: tuple[str, ...] = ("todo", "fixme", "example.com", "placeholder")


class AmbiguityDetector(ABC):
    @abstractmethod
    def is_ambiguous(self, text: str) -> bool:
        ...


class RegexAmbiguityDetector(AmbiguityDetector):
    """Flags hedging words, repeated questions and either/or phrasing."""

    def is_ambiguous(self, text: str) -> bool:
        return bool(
            _HEDGING.search(text)
            or _SECOND_QUESTION.search(text)
            or _DISJUNCTION.search(text)
        )


class EntityExtractor(ABC):
    @abstractmethod
    def extract(self, text: str) -> set[str]:
        """Return the distinct entities mentioned in ``text``."""
        ...


class RegexEntityExtractor(EntityExtractor):
    """URLs plus capitalized words."""

    def extract(self, text: str) -> set[str]:
        entities = set(_URL.findall(text))
        entities.update(_CAPITALIZED.findall(_URL.sub(" ", text)))
        return entities


def find_placeholder(text: str) -> str | None:
    """Return the first placeholder marker found in ``text``, if any."""
    lowered = text.lower()
    for marker in PLACEHOLDER_MARKERS:
        if marker in lowered:
            return marker
    return None
