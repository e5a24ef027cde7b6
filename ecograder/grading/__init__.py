"""
Grading Pipeline Module.

Oracle-backed grading of free-text submissions with deterministic
penalties, weighted scoring and student feedback.
"""

from ecograder.grading.authoring import AuthoringService, QuizGenerationError
from ecograder.grading.engine import GradingEngine, InsufficientContentError
from ecograder.grading.llm_client import LLMClient, LLMError
from ecograder.grading.prompt_builder import PromptBuilder
from ecograder.grading.rate_limiter import TokenBucket
from ecograder.grading.scorer import ResponseParseError, ResponseParser

__all__ = [
    "AuthoringService",
    "GradingEngine",
    "InsufficientContentError",
    "LLMClient",
    "LLMError",
    "PromptBuilder",
    "QuizGenerationError",
    "ResponseParseError",
    "ResponseParser",
    "TokenBucket",
]
