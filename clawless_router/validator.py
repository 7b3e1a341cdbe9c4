"""Heuristic quality gate for local backend responses.

Remote responses are not validated; the remote tier is the quality ceiling.
"""

import json
import re
from typing import Any

from clawless_router.heuristics import EntityExtractor, RegexEntityExtractor, find_placeholder
from clawless_router.models import Response, Task

_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n(.*)\n```$", re.DOTALL)


def parse_structured(content: str) -> Any:
    """Parse JSON content, tolerating one surrounding markdown fence.

    Raises:
        ValueError: If the content is not valid JSON.
    """
    text = content.strip()
    match = _FENCE.match(text)
    if match:
        text = match.group(1)
    return json.loads(text)


class QualityValidator:
    """Structural, length and hallucination checks on a response."""

    def __init__(self, extractor: EntityExtractor | None = None):
        self._extractor = extractor or RegexEntityExtractor()

    def validate(self, response: Response, task: Task) -> bool:
        return self.explain(response, task) is None

    def explain(self, response: Response, task: Task) -> str | None:
        """Return why ``response`` fails validation, or None if it passes."""
        content = response.content or ""

        if task.expects_structured_output:
            try:
                parsed = parse_structured(content)
            except ValueError as e:
                return f"structured output did not parse: {e}"
            if task.required_fields:
                if not isinstance(parsed, dict):
                    return "structured output is not an object"
                missing = [f for f in task.required_fields if f not in parsed]
                if missing:
                    return f"missing required fields: {', '.join(missing)}"

        if task.min_length is not None and len(content) < task.min_length:
            return f"content length {len(content)} below minimum {task.min_length}"

        marker = find_placeholder(content)
        if marker:
            return f"placeholder marker '{marker}' in content"

        if task.context:
            found = self._extractor.extract(content)
            known = self._extractor.extract(task.context)
            unmatched = found - known
            if len(unmatched) > len(found) / 2:
                return f"{len(unmatched)} of {len(found)} entities not grounded in context"

        return None
