"""
Teacher authoring helpers backed by the oracle.

Drafts model answers and key points for new assignments, and generates
multiple choice quizzes from syllabus entries.
"""

import logging
from typing import Any

from ecograder.config import Settings, get_settings
from ecograder.grading.llm_client import LLMClient, LLMError
from ecograder.grading.prompt_builder import PromptBuilder
from ecograder.grading.scorer import ResponseParseError, ResponseParser
from ecograder.models import ExpectedAnswerDraft, Quiz, QuizQuestion

logger = logging.getLogger(__name__)

QUIZ_QUESTION_COUNT = 10
QUIZ_PASSING_SCORE = 70
QUIZ_TIME_LIMIT_SECONDS = 600


class QuizGenerationError(Exception):
    """Raised when the oracle reply holds no usable quiz."""


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


class AuthoringService:
    """Oracle-backed drafting for teachers."""

    def __init__(
        self,
        settings: Settings | None = None,
        llm_client: LLMClient | None = None,
        quiz_client: LLMClient | None = None,
    ):
        self._settings = settings or get_settings()
        self._llm_client = llm_client or LLMClient(self._settings)
        if quiz_client is not None:
            self._quiz_client = quiz_client
        elif self._settings.quiz_api_key:
            self._quiz_client = LLMClient(self._settings, api_key=self._settings.quiz_api_key)
        else:
            self._quiz_client = self._llm_client
        self._parser = ResponseParser()

    def generate_expected_answer(
        self,
        title: str,
        description: str,
        subject: str,
        max_points: int,
        class_level: str = "",
    ) -> ExpectedAnswerDraft:
        """
        Draft a model answer and key points for an assignment.

        Never raises for oracle or parse failures; those come back as
        an unsuccessful draft with the error message.
        """
        prompt = PromptBuilder.build_expected_answer_prompt(
            title, description, subject, max_points, class_level
        )
        try:
            data = self._parser.parse_object(
                self._llm_client.generate(
                    system_prompt=PromptBuilder.AUTHOR_SYSTEM_PROMPT, user_prompt=prompt
                )
            )
        except LLMError as e:
            logger.error("Model answer generation failed for '%s': %s", title, e)
            return ExpectedAnswerDraft(success=False, error=str(e))
        except ResponseParseError as e:
            logger.warning("Unparseable model answer for '%s': %s", title, e)
            return ExpectedAnswerDraft(success=False, error="Failed to parse AI response")

        return ExpectedAnswerDraft(
            success=True,
            expected_answer=str(data.get("expectedAnswer") or ""),
            key_points=_str_list(data.get("keyPoints")),
            must_include_facts=_str_list(data.get("mustIncludeFacts")),
            common_mistakes=_str_list(data.get("commonMistakes")),
        )

    def generate_quiz(self, syllabus: dict[str, Any]) -> Quiz:
        """
        Generate a multiple choice quiz from a syllabus entry.

        Invalid questions are dropped and the quiz is padded with blank
        questions up to the fixed count, for the teacher to fill in.

        Args:
            syllabus: Mapping with title, subject, grade, content,
                description and topics (list of {topicName, description}).

        Raises:
            LLMError: If the oracle call fails.
            QuizGenerationError: If the reply holds no question list.
        """
        title = syllabus.get("title", "")
        logger.info("Generating quiz for '%s'", title)

        response = self._quiz_client.generate(
            system_prompt=PromptBuilder.AUTHOR_SYSTEM_PROMPT,
            user_prompt=PromptBuilder.build_quiz_prompt(syllabus, QUIZ_QUESTION_COUNT),
        )
        try:
            data = self._parser.parse_object(response)
        except ResponseParseError as e:
            raise QuizGenerationError(f"Failed to parse quiz for '{title}': {e}") from e

        raw_questions = data.get("questions")
        if not isinstance(raw_questions, list):
            raise QuizGenerationError(f"Quiz reply for '{title}' has no question list")

        questions = [q for q in (self._to_question(item) for item in raw_questions) if q]
        questions = questions[:QUIZ_QUESTION_COUNT]
        if len(questions) < QUIZ_QUESTION_COUNT:
            logger.warning(
                "Only %d valid questions for '%s', padding with blanks", len(questions), title
            )
            questions.extend(QuizQuestion() for _ in range(QUIZ_QUESTION_COUNT - len(questions)))

        return Quiz(
            questions=tuple(questions),
            passing_score=QUIZ_PASSING_SCORE,
            time_limit=QUIZ_TIME_LIMIT_SECONDS,
        )

    @staticmethod
    def _to_question(item: Any) -> QuizQuestion | None:
        if not isinstance(item, dict):
            return None
        question = item.get("question")
        options = item.get("options")
        answer = item.get("correctAnswer")
        if not question or not isinstance(options, list) or len(options) != 4:
            return None
        # bool is an int subclass; reject it explicitly
        if not isinstance(answer, int) or isinstance(answer, bool) or not 0 <= answer <= 3:
            return None
        return QuizQuestion(
            question=str(question),
            options=tuple(str(o) for o in options),  # type: ignore[arg-type]
            correct_answer=answer,
            explanation=str(item.get("explanation") or "No explanation provided"),
        )
