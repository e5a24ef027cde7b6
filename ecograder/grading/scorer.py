"""
Response parser for oracle sub-reports.

Pulls the JSON object out of a free-text oracle reply and validates it
into a sub-report model. A reply that cannot be parsed does not abort
grading: it is replaced by a fixed neutral default for that sub-report.
"""

import json
import logging
import re
from typing import Any, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from ecograder.models import (
    AnswerVerification,
    OriginalityCheck,
    QualityAnalysis,
    TopicRelevance,
)

logger = logging.getLogger(__name__)

ReportT = TypeVar("ReportT", bound=BaseModel)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class ResponseParseError(Exception):
    """Raised when an oracle reply holds no usable JSON object."""

    def __init__(self, message: str, raw_response: str | None = None):
        self.raw_response = raw_response
        super().__init__(message)


# ==============================================================================
# Neutral defaults used when a reply is malformed
# ==============================================================================


def default_verification(key_points: Sequence[str] = ()) -> AnswerVerification:
    """Zero-accuracy verification with every key point missing."""
    return AnswerVerification(
        content_accuracy=0,
        is_correct=False,
        wrong_facts=[],
        key_points_covered=[],
        key_points_missing=list(key_points),
        understanding=0,
        feedback="Unable to verify answer",
    )


def default_relevance() -> TopicRelevance:
    return TopicRelevance(
        score=0,
        is_relevant=False,
        topic_match="Unable to determine",
        feedback="Unable to analyze topic relevance",
    )


def default_quality() -> QualityAnalysis:
    return QualityAnalysis(score=0, grammar=0, clarity=0, effort=0, strengths=[], improvements=[])


def default_originality() -> OriginalityCheck:
    return OriginalityCheck(
        originality_score=50,
        is_likely_original=True,
        concerns=[],
        feedback="Unable to check originality",
    )


class ResponseParser:
    """
    Parses oracle replies into sub-report models.

    `extract_json` and `parse_object` raise `ResponseParseError`; the
    `parse_*` helpers never raise and fall back to neutral defaults.
    """

    def extract_json(self, response: str) -> str:
        """
        Extract the JSON object from a reply, tolerating surrounding prose.

        Args:
            response: Raw reply text.

        Returns:
            The JSON object text.

        Raises:
            ResponseParseError: If no complete object is present.
        """
        fenced = _FENCE_PATTERN.search(response)
        if fenced:
            response = fenced.group(1)

        brace_start = response.find("{")
        if brace_start == -1:
            raise ResponseParseError("No JSON object found in response", raw_response=response)

        # Match the outermost braces, ignoring braces inside string literals
        depth = 0
        in_string = False
        escaped = False
        for i, char in enumerate(response[brace_start:], start=brace_start):
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return response[brace_start : i + 1]

        raise ResponseParseError("Unclosed JSON object in response", raw_response=response)

    def parse_object(self, response: str) -> dict[str, Any]:
        """
        Decode the JSON object in a reply.

        Raises:
            ResponseParseError: If the reply has no valid JSON object.
        """
        json_str = self.extract_json(response)
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ResponseParseError(f"Invalid JSON in response: {e}", raw_response=response) from e

        if not isinstance(data, dict):
            raise ResponseParseError("Response JSON is not an object", raw_response=response)
        return data

    def _parse_report(self, response: str, model: type[ReportT], fallback: ReportT) -> ReportT:
        try:
            return model.model_validate(self.parse_object(response))
        except ResponseParseError as e:
            logger.warning("Malformed %s reply, using defaults: %s", model.__name__, e)
        except ValidationError as e:
            logger.warning(
                "%s reply failed validation, using defaults: %d error(s)",
                model.__name__,
                e.error_count(),
            )
        return fallback

    def parse_verification(
        self, response: str, key_points: Sequence[str] = ()
    ) -> AnswerVerification:
        """Parse an answer verification reply."""
        return self._parse_report(response, AnswerVerification, default_verification(key_points))

    def parse_relevance(self, response: str) -> TopicRelevance:
        """Parse a topic relevance reply."""
        return self._parse_report(response, TopicRelevance, default_relevance())

    def parse_quality(self, response: str) -> QualityAnalysis:
        """Parse a writing quality reply."""
        return self._parse_report(response, QualityAnalysis, default_quality())

    def parse_originality(self, response: str) -> OriginalityCheck:
        """Parse an originality check reply."""
        return self._parse_report(response, OriginalityCheck, default_originality())
