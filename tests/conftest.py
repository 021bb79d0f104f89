# =============================================================================
# CONFTEST - Shared fixtures
# =============================================================================
# Fake model client, frozen clock and an in-memory wired QuizService
# =============================================================================

import json
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from app.core.config import Settings
from app.services.question_generator import QuestionGeneratorService
from app.services.quiz_service import QuizService
from app.services.session_store import InMemorySessionStore


START = datetime(2025, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


def question_json(
    question: str = "Which service provides managed foundation models through an API?",
    options: Optional[List[str]] = None,
    correct_answer: int = 0,
    **extra: Any
) -> Dict[str, Any]:
    """Question payload in the shape the model is asked to return."""
    payload = {
        "question": question,
        "options": options or ["Amazon Bedrock", "Amazon Polly", "Amazon Lex", "AWS Glue"],
        "correctAnswer": correct_answer,
        "explanation": "Amazon Bedrock offers foundation models as a managed service.",
        "topic": "Amazon Bedrock",
        "domain": "Generative AI",
    }
    payload.update(extra)
    return payload


def model_reply(**kwargs: Any) -> str:
    """A typical chatty model reply wrapping the JSON object."""
    return "Here is your question:\n" + json.dumps(question_json(**kwargs)) + "\nGood luck!"


class FakeLLMClient:
    """Stands in for LLMClient: records prompts and replays queued replies."""

    def __init__(self, replies: Optional[List[Any]] = None):
        self.replies: List[Any] = list(replies or [])
        self.prompts: List[str] = []
        self.configured = True

    def queue(self, *replies: Any) -> None:
        self.replies.extend(replies)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return model_reply()

    def health_check(self) -> dict:
        return {
            "provider": "anthropic",
            "configured": self.configured,
            "model": "fake-model",
            "status": "ready" if self.configured else "not_configured",
        }


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="development",
        session_store="memory",
        llm_provider="anthropic",
        anthropic_api_key="test-key-123",
        log_level="ERROR",
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def generator(fake_llm, settings) -> QuestionGeneratorService:
    return QuestionGeneratorService(
        llm_client=fake_llm,
        subject=settings.quiz_subject,
        domains=settings.quiz_domains,
        rng=random.Random(7),
    )


@pytest.fixture
def store(settings, clock) -> InMemorySessionStore:
    return InMemorySessionStore(ttl_seconds=settings.memory_session_ttl_seconds, clock=clock)


@pytest.fixture
def quiz_service(generator, store, settings, clock) -> QuizService:
    return QuizService(
        generator=generator,
        store=store,
        settings=settings,
        clock=clock,
        rng=random.Random(3),
    )
