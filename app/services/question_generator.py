"""
Question Generator Service
Builds the prompt, calls the LLM once, and turns its reply into a Question
"""
import logging
import random
import time
from typing import Any, Dict, List, Optional, Sequence

from app.core.errors import GenerationError, ModelUnavailableError
from app.models.quiz_sessions import DifficultyLevel, Question, new_question_id
from app.prompts.single_question_prompt import build_single_question_prompt
from app.services.llm_client import LLMClient, LLMClientError
from app.utils.quiz_parser import parse_question_json, shuffle_options

DEFAULT_EXPLANATION = "No explanation provided."
DEFAULT_TOPIC = "General"
DEFAULT_DOMAIN = "AI Services"


class QuestionGeneratorService:
    """
    Generates one multiple-choice question per call.

    Workflow:
    1. Build the prompt from difficulty, topic and exclusions
    2. Invoke the model (single attempt, no retries)
    3. Extract, sanitize and validate the JSON reply
    4. Shuffle the options so the correct answer lands anywhere
    """

    def __init__(
        self,
        llm_client: LLMClient,
        subject: str = "AWS AI Practitioner certification",
        domains: Optional[Sequence[str]] = None,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize question generator service

        Args:
            llm_client: Client for the hosted model
            subject: Subject matter embedded in the prompt
            domains: Domain labels the model must choose from
            rng: Random generator used for option shuffling
            logger: Optional logger (module logger by default)
        """
        self.llm_client = llm_client
        self.subject = subject
        self.domains = list(domains or [
            "Machine Learning Fundamentals",
            "AI Services",
            "Responsible AI",
            "Generative AI",
        ])
        self.rng = rng or random.Random()
        self.logger = logger or logging.getLogger(__name__)

    async def generate(
        self,
        difficulty: DifficultyLevel,
        exclude_ids: Optional[List[str]] = None,
        topic: Optional[str] = None,
        avoid_topics: Optional[List[str]] = None
    ) -> Question:
        """
        Generate a single question

        Args:
            difficulty: Difficulty level for the question
            exclude_ids: IDs of questions already asked in the session
            topic: Optional topic to focus on
            avoid_topics: Topics already covered in the session

        Returns:
            A validated Question with shuffled options

        Raises:
            ModelUnavailableError: If the model call fails
            NoJSONFoundError / MalformedJSONError / SchemaViolationError:
                If the reply cannot be turned into a valid question
        """
        exclude_ids = exclude_ids or []
        started = time.monotonic()

        self.logger.info(
            f"🎯 Generating {difficulty} question - "
            f"Topic: {topic or 'any'}, Excluding: {len(exclude_ids)} questions"
        )

        prompt = build_single_question_prompt(
            difficulty=difficulty,
            subject=self.subject,
            domains=self.domains,
            exclude_ids=exclude_ids,
            avoid_topics=avoid_topics,
            topic=topic
        )

        try:
            raw_response = await self.llm_client.generate(prompt)
        except LLMClientError as e:
            self.logger.error(f"❌ Model call failed: {e}")
            raise ModelUnavailableError(f"Question generation service unavailable: {e}")

        if not raw_response:
            raise ModelUnavailableError("Model returned an empty response")

        try:
            data = parse_question_json(raw_response)
        except GenerationError as e:
            self.logger.error(
                f"❌ Could not parse model reply ({e.code}): {e.message} - "
                f"Preview: {raw_response[:200]!r}"
            )
            raise

        question = self._build_question(data, difficulty, topic, exclude_ids)

        elapsed_ms = (time.monotonic() - started) * 1000
        self.logger.info(
            f"✅ Generated question {question.id} "
            f"({question.difficulty}, {question.domain}) in {elapsed_ms:.0f}ms"
        )

        return question

    def _build_question(
        self,
        data: Dict[str, Any],
        difficulty: DifficultyLevel,
        topic: Optional[str],
        exclude_ids: List[str]
    ) -> Question:
        """Shuffle options and fill defaults for optional fields"""
        options = [opt.strip() for opt in data["options"]]
        shuffled, correct_index = shuffle_options(options, data["correctAnswer"], self.rng)

        self.logger.debug(
            f"🔀 Options shuffled - correct answer moved "
            f"{data['correctAnswer']} → {correct_index}"
        )

        question_id = new_question_id()
        while question_id in exclude_ids:
            question_id = new_question_id()

        return Question(
            id=question_id,
            question=data["question"].strip(),
            options=shuffled,
            correctAnswer=correct_index,
            explanation=_text_or_default(data.get("explanation"), DEFAULT_EXPLANATION),
            difficulty=difficulty,
            topic=_text_or_default(data.get("topic"), topic or DEFAULT_TOPIC),
            domain=_text_or_default(data.get("domain"), DEFAULT_DOMAIN)
        )


def _text_or_default(value: Optional[str], default: str) -> str:
    if value and value.strip():
        return value.strip()
    return default
