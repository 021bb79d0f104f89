"""
Quiz Service
Session lifecycle: start, serve questions, grade answers, report results
FILE: app/services/quiz_service.py
"""
import asyncio
import logging
import random
import weakref
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from app.core.config import Settings
from app.core.errors import (
    GenerationError,
    QuestionMismatchError,
    QuizAlreadyCompletedError,
    QuizNotStartedError,
    SessionCreationError,
    SessionNotFoundError,
    StoreError,
    ValidationError,
)
from app.models.quiz_results import QuizResults
from app.models.quiz_sessions import (
    AnswerSummary,
    DifficultyLevel,
    Question,
    QuizProgress,
    QuizProgressResponse,
    QuizSession,
    QuizSessionStatus,
    SessionProgress,
    UserAnswer,
    utcnow,
)
from app.models.start_session import NextQuestionResponse, StartSessionResponse
from app.models.submit_answer import SubmitAnswerResponse
from app.services.adaptive_difficulty import (
    AdaptiveDifficultyError,
    DifficultyRanges,
    next_difficulty,
)
from app.services.llm_client import LLMClient
from app.services.question_generator import QuestionGeneratorService
from app.services.results_service import compute_final_results
from app.services.session_store import SessionStore, create_session_store


def ranges_from_settings(settings: Settings) -> DifficultyRanges:
    """
    Build and validate the position ranges configured in settings

    Raises:
        AdaptiveDifficultyError: If a range is not a [start, end] pair or
            the ranges do not partition 1..total_questions
    """
    bounds = {}
    for name in ("beginner", "intermediate", "advanced"):
        value = getattr(settings, f"{name}_range")
        if len(value) != 2:
            raise AdaptiveDifficultyError(
                f"Invalid {name} range {value}: expected [start, end]"
            )
        bounds[name] = tuple(value)

    ranges = DifficultyRanges(**bounds)
    ranges.validate(settings.total_questions)
    return ranges


def calculate_score(correct_answers: int, answered: int) -> int:
    """Running score percentage, rounded half up"""
    if answered == 0:
        return 0
    return int(correct_answers * 100 / answered + 0.5)


class QuizService:
    """
    Orchestrates quiz sessions.

    State machine per session: NotStarted → InProgress → Completed.
    Mutations on one session run under a per-session lock; the store's
    version check catches writers in other processes.
    """

    def __init__(
        self,
        generator: QuestionGeneratorService,
        store: SessionStore,
        settings: Settings,
        ranges: Optional[DifficultyRanges] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = utcnow,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize quiz service

        Args:
            generator: Question generator
            store: Session store
            settings: Quiz settings (length, time limit, topic catalog)
            ranges: Difficulty position ranges (built from settings by default)
            logger: Optional logger (module logger by default)
            clock: Time source
            rng: Random generator used to pick topics
        """
        self.generator = generator
        self.store = store
        self.settings = settings
        self.ranges = ranges or ranges_from_settings(settings)
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock
        self.rng = rng or random.Random()
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    # ==================== HELPERS ====================

    def _session_lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    async def _load(self, session_id: str) -> QuizSession:
        session = await self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Quiz session not found: {session_id}")
        return session

    def _time_remaining(self, session: QuizSession) -> int:
        end = session.endTime or self.clock()
        elapsed = int((end - session.startTime).total_seconds())
        return max(0, self.settings.time_limit_seconds - elapsed)

    def _progress(self, session: QuizSession) -> QuizProgress:
        return QuizProgress(
            currentQuestion=session.currentQuestionIndex + 1,
            totalQuestions=session.totalQuestions,
            correctAnswers=session.correctAnswers,
            score=session.score,
            timeRemaining=self._time_remaining(session)
        )

    def _pick_topic(self, session: QuizSession) -> Optional[str]:
        """Random catalog topic, preferring ones the session has not covered"""
        catalog = self.settings.quiz_topics
        if not catalog:
            return None

        covered = set(session.answered_topics)
        unused = [topic for topic in catalog if topic not in covered]
        return self.rng.choice(unused or catalog)

    async def _generate_question(self, session: QuizSession) -> Question:
        """Generate the question for the session's next position (not persisted)"""
        difficulty = next_difficulty(session, self.ranges)
        topic = self._pick_topic(session)

        question = await self.generator.generate(
            difficulty=difficulty,
            exclude_ids=session.answered_question_ids,
            topic=topic,
            avoid_topics=session.answered_topics
        )

        return question.model_copy(update={"questionNumber": session.currentQuestionIndex + 1})

    async def _ensure_current_question(self, session: QuizSession) -> QuizSession:
        """
        Make sure an open session has a question awaiting an answer

        Generates and persists one if missing. Callers must hold the
        session lock.
        """
        if session.currentQuestion is not None:
            return session

        self.logger.info(
            f"🔄 Session {session.sessionId} has no current question - "
            f"generating question {session.currentQuestionIndex + 1}"
        )

        session.currentQuestion = await self._generate_question(session)
        return await self.store.update(session)

    # ==================== LIFECYCLE ====================

    async def start_session(
        self,
        difficulty: Optional[DifficultyLevel] = None,
        user_id: Optional[str] = None
    ) -> StartSessionResponse:
        """
        Start a new quiz session with its first question

        Args:
            difficulty: Nominal difficulty (beginner by default)
            user_id: Optional user identifier

        Returns:
            StartSessionResponse

        Raises:
            SessionCreationError: If the first question or the session
                cannot be created
        """
        session = QuizSession(
            totalQuestions=self.settings.total_questions,
            difficulty=difficulty or "beginner",
            userId=user_id,
            startTime=self.clock()
        )

        self.logger.info(
            f"🎯 Starting quiz session {session.sessionId} - "
            f"Difficulty: {session.difficulty}, User: {user_id or 'anonymous'}"
        )

        try:
            session.currentQuestion = await self._generate_question(session)
            session = await self.store.create(session)
        except (GenerationError, StoreError) as e:
            self.logger.error(f"❌ Failed to start session {session.sessionId}: {e.code} - {e.message}")
            raise SessionCreationError(
                f"Failed to start quiz session: {e.message}",
                details={"cause": e.code}
            )

        self.logger.info(f"✅ Quiz session started: {session.sessionId}")

        return StartSessionResponse(
            sessionId=session.sessionId,
            totalQuestions=session.totalQuestions,
            timeLimit=self.settings.time_limit_seconds,
            firstQuestion=session.currentQuestion
        )

    async def get_session_status(self, session_id: str) -> QuizSessionStatus:
        session = await self._load(session_id)
        return QuizSessionStatus(
            sessionId=session.sessionId,
            currentQuestionIndex=session.currentQuestionIndex,
            totalQuestions=session.totalQuestions,
            score=session.score,
            correctAnswers=session.correctAnswers,
            difficulty=session.difficulty,
            isCompleted=session.isCompleted,
            startTime=session.startTime,
            endTime=session.endTime,
            userId=session.userId
        )

    async def get_next_question(self, session_id: str) -> NextQuestionResponse:
        """
        Current question for an open session, generating it if missing

        Raises:
            SessionNotFoundError, QuizAlreadyCompletedError, GenerationError
        """
        async with self._session_lock(session_id):
            session = await self._load(session_id)

            if session.isCompleted:
                raise QuizAlreadyCompletedError(f"Quiz session {session_id} is already completed")

            session = await self._ensure_current_question(session)

        return NextQuestionResponse(
            question=session.currentQuestion,
            progress=self._progress(session)
        )

    async def submit_answer(
        self,
        session_id: str,
        question_id: str,
        selected_answer: int,
        time_spent: float = 0
    ) -> SubmitAnswerResponse:
        """
        Grade an answer and advance the session

        The next question is generated before anything is stored, so a
        generation failure leaves the session unchanged and the answer can
        be resubmitted.

        Args:
            session_id: Quiz session ID
            question_id: ID of the question being answered
            selected_answer: Selected option index (0-3)
            time_spent: Seconds spent on the question

        Returns:
            SubmitAnswerResponse with either the next question or final results

        Raises:
            ValidationError: If selected_answer is out of range
            SessionNotFoundError: If the session does not exist
            QuizAlreadyCompletedError: If the quiz is finished
            QuestionMismatchError: If question_id is not the current question
            GenerationError: If the next question cannot be generated
        """
        if not 0 <= selected_answer <= 3:
            raise ValidationError(
                "selectedAnswer must be between 0 and 3",
                details={"selectedAnswer": selected_answer}
            )

        async with self._session_lock(session_id):
            session = await self._load(session_id)

            if session.isCompleted:
                raise QuizAlreadyCompletedError(f"Quiz session {session_id} is already completed")

            question = session.currentQuestion
            if question is None or question.id != question_id:
                self.logger.warning(
                    f"⚠️ Question mismatch on session {session_id}: submitted {question_id}"
                )
                raise QuestionMismatchError(
                    f"Question {question_id} is not the current question for session {session_id}"
                )

            now = self.clock()
            is_correct = selected_answer == question.correctAnswer
            answered = session.currentQuestionIndex + 1
            correct_answers = session.correctAnswers + (1 if is_correct else 0)

            projected = session.model_copy(deep=True)
            projected.answers.append(UserAnswer(
                questionId=question.id,
                selectedAnswer=selected_answer,
                isCorrect=is_correct,
                timeSpent=time_spent or 0,
                timestamp=now,
                difficulty=question.difficulty,
                topic=question.topic,
                domain=question.domain
            ))
            projected.currentQuestionIndex = answered
            projected.correctAnswers = correct_answers
            projected.score = calculate_score(correct_answers, answered)

            is_completed = answered >= projected.totalQuestions

            if is_completed:
                projected.isCompleted = True
                projected.endTime = now
                projected.currentQuestion = None
            else:
                projected.currentQuestion = await self._generate_question(projected)

            session = await self.store.update(projected)

        self.logger.info(
            f"📝 Session {session_id} - Q{answered}: "
            f"{'✅ correct' if is_correct else '❌ incorrect'}, score {session.score}%"
        )

        final_results = None
        if is_completed:
            final_results = compute_final_results(session, now)
            self.logger.info(
                f"🏁 Quiz completed: {session_id} - "
                f"{session.correctAnswers}/{session.totalQuestions} correct"
            )

        return SubmitAnswerResponse(
            isCorrect=is_correct,
            correctAnswer=question.correctAnswer,
            explanation=question.explanation,
            sessionProgress=SessionProgress(
                currentQuestionIndex=session.currentQuestionIndex,
                totalQuestions=session.totalQuestions,
                score=session.score,
                correctAnswers=session.correctAnswers
            ),
            isQuizCompleted=is_completed,
            nextQuestion=session.currentQuestion,
            finalResults=final_results
        )

    # ==================== REPORTING ====================

    async def get_results(self, session_id: str) -> QuizResults:
        """
        Results for a completed session, or an open one with answers

        Raises:
            SessionNotFoundError: If the session does not exist
            QuizNotStartedError: If nothing has been answered yet
        """
        session = await self._load(session_id)

        if not session.isCompleted and session.currentQuestionIndex == 0:
            raise QuizNotStartedError(f"No questions answered yet in session {session_id}")

        return compute_final_results(session, self.clock())

    async def get_progress(self, session_id: str) -> QuizProgressResponse:
        session = await self._load(session_id)

        return QuizProgressResponse(
            sessionId=session.sessionId,
            currentQuestion=session.currentQuestionIndex,
            totalQuestions=session.totalQuestions,
            correctAnswers=session.correctAnswers,
            score=session.score,
            timeRemaining=self._time_remaining(session),
            isCompleted=session.isCompleted,
            answers=[
                AnswerSummary(
                    questionId=answer.questionId,
                    isCorrect=answer.isCorrect,
                    timeSpent=answer.timeSpent
                )
                for answer in session.answers
            ]
        )

    async def delete_session(self, session_id: str) -> Dict[str, Any]:
        async with self._session_lock(session_id):
            deleted = await self.store.delete(session_id)

        if not deleted:
            raise SessionNotFoundError(f"Quiz session not found: {session_id}")

        return {"sessionId": session_id, "deleted": True}

    async def get_stats(self) -> Dict[str, Any]:
        return {
            "activeSessions": await self.store.count(),
            "storage": self.store.backend_name
        }


def build_quiz_service(
    settings: Settings,
    logger: Optional[logging.Logger] = None
) -> QuizService:
    """
    Wire the quiz service from settings

    Raises:
        AdaptiveDifficultyError: If the configured difficulty ranges are invalid
    """
    llm_client = LLMClient.from_settings(settings)
    generator = QuestionGeneratorService(
        llm_client=llm_client,
        subject=settings.quiz_subject,
        domains=settings.quiz_domains
    )
    store = create_session_store(settings)

    return QuizService(
        generator=generator,
        store=store,
        settings=settings,
        logger=logger
    )
