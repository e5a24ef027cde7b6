"""
Prompt builder for the grading oracle.

Each sub-report has its own prompt demanding a single JSON object in a
fixed shape. Student text is truncated per prompt to keep requests small.
"""

from typing import Any

from ecograder.models import Assignment

# Characters of student text sent with each query
VERIFICATION_CHAR_LIMIT = 10000
RELEVANCE_CHAR_LIMIT = 8000
QUALITY_CHAR_LIMIT = 8000
ORIGINALITY_CHAR_LIMIT = 6000

DEFAULT_CLASS_LEVEL = "School student"


class PromptBuilder:
    """
    Builds oracle prompts for grading and authoring.

    Grading prompts are strict: wrong or off-topic content must score low,
    and the oracle must answer with JSON only.
    """

    SYSTEM_PROMPT = """You are a STRICT but fair school teacher and examiner.

RULES:
1. Judge ONLY what the student actually wrote. Do not assume knowledge that is not shown.
2. Wrong facts and off-topic content must receive LOW scores. Never be generous with incorrect content.
3. Two identical answers MUST receive identical scores.
4. Keep any explanation simple enough for the student's class level.

OUTPUT RULES:
- Respond with a single valid JSON object in exactly the format requested.
- Do not add any text before or after the JSON."""

    AUTHOR_SYSTEM_PROMPT = """You are an expert teacher and educational content creator.
Every fact you write must be accurate. Respond with a single valid JSON object only."""

    @staticmethod
    def get_system_prompt() -> str:
        """Get the system prompt for grading queries."""
        return PromptBuilder.SYSTEM_PROMPT

    @staticmethod
    def _class_level(assignment: Assignment) -> str:
        return assignment.class_name or DEFAULT_CLASS_LEVEL

    @staticmethod
    def build_verification_prompt(content: str, assignment: Assignment) -> str:
        """Build the answer verification prompt."""
        if assignment.key_points:
            key_points = "\n".join(f"{i}. {p}" for i, p in enumerate(assignment.key_points, start=1))
        else:
            key_points = "No specific key points provided"

        expected = assignment.expected_answer or (
            "Evaluate based on the topic - check if content is factually correct"
        )

        return f"""ANSWER VERIFICATION

CLASS LEVEL: {PromptBuilder._class_level(assignment)}
SUBJECT: {assignment.subject}
TOPIC/QUESTION: {assignment.title}

EXPECTED ANSWER:
{expected}

KEY POINTS THAT MUST BE COVERED:
{key_points}

STUDENT ANSWER:
---BEGIN ANSWER---
{content[:VERIFICATION_CHAR_LIMIT]}
---END ANSWER---

SCORING BANDS:
- Completely wrong or about something else entirely: 0-20
- Major factual errors: 20-40
- Partially correct, missing key points: 40-60
- Mostly correct with minor issues: 60-80
- Excellent, covers everything: 80-100
- Gibberish or random text: 0-10

OUTPUT FORMAT (respond with ONLY this JSON):
{{
  "contentAccuracy": <number 0-100>,
  "isCorrect": <true only if the answer is substantially correct>,
  "wrongFacts": ["<each factually incorrect statement the student made>"],
  "keyPointsCovered": ["<key points the student addressed correctly>"],
  "keyPointsMissing": ["<important points the student missed>"],
  "understanding": <number 0-100>,
  "feedback": "<2-3 simple sentences on what was right and what was wrong>"
}}"""

    @staticmethod
    def build_relevance_prompt(content: str, assignment: Assignment) -> str:
        """Build the topic relevance prompt."""
        return f"""TOPIC RELEVANCE CHECK

SUBJECT: {assignment.subject}
ASSIGNED TOPIC/QUESTION: {assignment.title}

STUDENT ANSWER:
---BEGIN ANSWER---
{content[:RELEVANCE_CHAR_LIMIT]}
---END ANSWER---

SCORING BANDS:
- About a completely different topic: 0-15
- Only slightly related: 15-40
- On topic but misses the main point: 40-60
- Addresses the topic reasonably: 60-80
- Directly and fully addresses the topic: 80-100

OUTPUT FORMAT (respond with ONLY this JSON):
{{
  "score": <number 0-100>,
  "isRelevant": <false if score is below 40>,
  "topicMatch": "<what topic the answer actually discusses>",
  "feedback": "<1-2 simple sentences>"
}}"""

    @staticmethod
    def build_quality_prompt(content: str, assignment: Assignment) -> str:
        """Build the writing quality prompt."""
        return f"""WRITING QUALITY ANALYSIS

CLASS LEVEL: {PromptBuilder._class_level(assignment)}
SUBJECT: {assignment.subject}
TOPIC: {assignment.title}

STUDENT ANSWER:
---BEGIN ANSWER---
{content[:QUALITY_CHAR_LIMIT]}
---END ANSWER---

Judge the writing against what is expected at this class level.

SCORING BANDS:
- Random text or gibberish: 0-20
- Very poor grammar or structure: 20-40
- Basic but understandable: 40-60
- Good quality writing: 60-80
- Excellent writing: 80-100

OUTPUT FORMAT (respond with ONLY this JSON):
{{
  "score": <number 0-100>,
  "grammar": <number 0-100>,
  "clarity": <number 0-100>,
  "effort": <number 0-100>,
  "strengths": ["<1-2 things the student did well>"],
  "improvements": ["<1-2 things to improve, written for the student>"]
}}"""

    @staticmethod
    def build_originality_prompt(content: str) -> str:
        """Build the originality check prompt."""
        return f"""ORIGINALITY CHECK

Decide whether this is original student work or copied / AI-generated content.

CONTENT:
---BEGIN ANSWER---
{content[:ORIGINALITY_CHAR_LIMIT]}
---END ANSWER---

Signs of work that is NOT original:
- Polished, professional prose unlikely for a student
- Generic content that could fit any similar topic
- Encyclopedia or textbook style passages
- Vocabulary far beyond the student's level
- Stock AI phrases such as "It's important to note"

OUTPUT FORMAT (respond with ONLY this JSON):
{{
  "originalityScore": <number 0-100, 100 means clearly original student work>,
  "isLikelyOriginal": <boolean>,
  "concerns": ["<any originality concerns>"],
  "feedback": "<brief assessment>"
}}"""

    @staticmethod
    def build_expected_answer_prompt(
        title: str,
        description: str,
        subject: str,
        max_points: int,
        class_level: str = "",
    ) -> str:
        """Build the model-answer generation prompt for teachers."""
        return f"""MODEL ANSWER GENERATION

CLASS LEVEL: {class_level or DEFAULT_CLASS_LEVEL}
SUBJECT: {subject}
ASSIGNMENT TITLE: {title}
ASSIGNMENT QUESTION: {description or title}
MAX POINTS: {max_points}

Write a model answer suitable for the class level. It must be simple enough
for the students, cover every essential concept, and include the specific
facts, dates, names or formulas that must be correct.

OUTPUT FORMAT (respond with ONLY this JSON):
{{
  "expectedAnswer": "<complete model answer>",
  "keyPoints": ["<key point that MUST appear in a good answer>"],
  "mustIncludeFacts": ["<fact, date, name or formula that must be correct>"],
  "commonMistakes": ["<wrong answer students often give>"]
}}"""

    @staticmethod
    def build_quiz_prompt(syllabus: dict[str, Any], question_count: int) -> str:
        """Build the multiple-choice quiz generation prompt."""
        title = syllabus.get("title", "")
        subject = syllabus.get("subject") or "General"
        grade = syllabus.get("grade") or "School level"

        context: list[str] = []
        if (syllabus.get("content") or "").strip():
            context.append(f"Content Details: {syllabus['content']}")
        if (syllabus.get("description") or "").strip():
            context.append(f"Description: {syllabus['description']}")
        topics = syllabus.get("topics") or []
        if topics:
            lines = [f"- {t.get('topicName', '')}: {t.get('description') or ''}" for t in topics]
            context.append("Topics Covered:\n" + "\n".join(lines))

        return f"""QUIZ GENERATION

TOPIC: "{title}"
SUBJECT: {subject}
GRADE LEVEL: {grade}
{chr(10).join(context)}

Create exactly {question_count} multiple choice questions about "{title}":
1. Each question has exactly 4 options and ONE correct answer.
2. Cover definitions, key facts, applications and understanding.
3. Mix easy, medium and challenging questions for {grade} students.
4. Give a short explanation for each correct answer.

OUTPUT FORMAT (respond with ONLY this JSON):
{{
  "questions": [
    {{
      "question": "<question text>",
      "options": ["<A>", "<B>", "<C>", "<D>"],
      "correctAnswer": <index 0-3 of the correct option>,
      "explanation": "<why the answer is correct>"
    }}
  ]
}}"""
