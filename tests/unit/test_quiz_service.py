# =============================================================================
# TESTS - Quiz Service
# =============================================================================
# Session lifecycle against the in-memory store and a fake model client
# =============================================================================

import asyncio

import pytest

from app.core.errors import (
    NoJSONFoundError,
    QuestionMismatchError,
    QuizAlreadyCompletedError,
    QuizNotStartedError,
    SessionCreationError,
    SessionNotFoundError,
    ValidationError,
)
from app.models.quiz_sessions import Question
from app.services.adaptive_difficulty import AdaptiveDifficultyError
from app.services.quiz_service import calculate_score, ranges_from_settings


def pick(question: Question, correct: bool) -> int:
    if correct:
        return question.correctAnswer
    return (question.correctAnswer + 1) % 4


async def answer(service, session_id: str, question: Question, correct: bool = True):
    return await service.submit_answer(
        session_id=session_id,
        question_id=question.id,
        selected_answer=pick(question, correct),
        time_spent=12.5,
    )


class TestCalculateScore:

    @pytest.mark.parametrize(
        "correct, answered, expected",
        [(0, 0, 0), (1, 1, 100), (1, 3, 33), (2, 3, 67), (1, 8, 13), (5, 10, 50)],
    )
    def test_rounds_half_up(self, correct, answered, expected):
        assert calculate_score(correct, answered) == expected


class TestRangesFromSettings:

    def test_default_ranges(self, settings):
        ranges = ranges_from_settings(settings)

        assert ranges.beginner == (1, 3)
        assert ranges.advanced == (8, 10)

    @pytest.mark.parametrize("bad_range", [[1, 2, 3], [1], []])
    def test_range_must_be_a_pair(self, settings, bad_range):
        settings.beginner_range = bad_range

        with pytest.raises(AdaptiveDifficultyError):
            ranges_from_settings(settings)


class TestStartSession:

    @pytest.mark.parametrize("difficulty", ["beginner", "intermediate", "advanced"])
    @pytest.mark.asyncio
    async def test_start_returns_fresh_session(self, quiz_service, difficulty):
        started = await quiz_service.start_session(difficulty=difficulty)

        assert started.totalQuestions == 10
        assert started.timeLimit == 1800
        assert 0 <= started.firstQuestion.correctAnswer <= 3
        assert started.firstQuestion.questionNumber == 1
        assert started.firstQuestion.difficulty == difficulty

        status = await quiz_service.get_session_status(started.sessionId)
        assert status.currentQuestionIndex == 0
        assert status.isCompleted is False
        assert status.difficulty == difficulty
        assert status.endTime is None

    @pytest.mark.asyncio
    async def test_default_difficulty_is_beginner(self, quiz_service):
        started = await quiz_service.start_session(user_id="user_1")

        status = await quiz_service.get_session_status(started.sessionId)
        assert status.difficulty == "beginner"
        assert status.userId == "user_1"

    @pytest.mark.asyncio
    async def test_topic_comes_from_catalog(self, quiz_service, fake_llm, settings):
        await quiz_service.start_session()

        assert any(f"Focus specifically on: {topic}" in fake_llm.prompts[0] for topic in settings.quiz_topics)

    @pytest.mark.asyncio
    async def test_generation_failure_is_session_creation_error(self, quiz_service, fake_llm, store):
        fake_llm.queue("Sorry, I can't do that.")

        with pytest.raises(SessionCreationError) as exc_info:
            await quiz_service.start_session()

        assert exc_info.value.status_code == 502
        assert exc_info.value.details == {"cause": "NO_JSON_FOUND"}
        assert await store.count() == 0


class TestSubmitAnswer:

    @pytest.mark.asyncio
    async def test_wrong_answer_scenario(self, quiz_service):
        started = await quiz_service.start_session(difficulty="beginner")
        question = started.firstQuestion

        result = await answer(quiz_service, started.sessionId, question, correct=False)

        assert result.isCorrect is False
        assert result.correctAnswer == question.correctAnswer
        assert result.explanation == question.explanation
        assert result.nextQuestion is not None
        assert result.nextQuestion.questionNumber == 2
        assert result.isQuizCompleted is False
        assert result.finalResults is None
        assert result.sessionProgress.currentQuestionIndex == 1
        assert result.sessionProgress.score == 0

    @pytest.mark.asyncio
    async def test_score_tracks_running_accuracy(self, quiz_service):
        started = await quiz_service.start_session()
        question = started.firstQuestion
        pattern = [True, False, False, True, True, False, True, True, False, True]
        correct = 0

        for index, is_correct in enumerate(pattern, start=1):
            result = await answer(quiz_service, started.sessionId, question, is_correct)
            correct += is_correct

            assert result.sessionProgress.score == int(correct * 100 / index + 0.5)
            assert result.sessionProgress.correctAnswers == correct
            question = result.nextQuestion

    @pytest.mark.asyncio
    async def test_resubmitting_answered_question_is_mismatch(self, quiz_service):
        started = await quiz_service.start_session()
        await answer(quiz_service, started.sessionId, started.firstQuestion)

        with pytest.raises(QuestionMismatchError):
            await answer(quiz_service, started.sessionId, started.firstQuestion)

    @pytest.mark.asyncio
    async def test_completion_happens_on_last_answer_only(self, quiz_service):
        started = await quiz_service.start_session()
        question = started.firstQuestion

        for index in range(1, 11):
            result = await answer(quiz_service, started.sessionId, question)
            status = await quiz_service.get_session_status(started.sessionId)

            assert result.isQuizCompleted is (index == 10)
            assert status.isCompleted is (index == 10)
            assert (status.endTime is not None) is status.isCompleted
            question = result.nextQuestion

        assert question is None

    @pytest.mark.asyncio
    async def test_perfect_quiz(self, quiz_service):
        started = await quiz_service.start_session()
        question = started.firstQuestion

        for _ in range(10):
            result = await answer(quiz_service, started.sessionId, question)
            question = result.nextQuestion

        assert result.sessionProgress.score == 100
        assert result.isQuizCompleted is True
        assert result.finalResults.accuracy == 100.0
        assert result.finalResults.isCompleted is True
        assert result.finalResults.answeredQuestions == 10

    @pytest.mark.asyncio
    async def test_difficulty_adapts_to_accuracy(self, quiz_service):
        started = await quiz_service.start_session()
        question = started.firstQuestion

        for _ in range(3):
            result = await answer(quiz_service, started.sessionId, question)
            question = result.nextQuestion

        # Position 4 is intermediate by range; 3/3 correct promotes it
        assert question.difficulty == "advanced"
        assert question.questionNumber == 4

    @pytest.mark.asyncio
    async def test_exclusions_include_answered_questions(self, quiz_service, fake_llm):
        started = await quiz_service.start_session()

        await answer(quiz_service, started.sessionId, started.firstQuestion)

        assert started.firstQuestion.id in fake_llm.prompts[-1]

    @pytest.mark.asyncio
    async def test_covered_topic_not_chosen_while_others_remain(self, quiz_service, fake_llm, settings):
        settings.quiz_topics = ["Amazon Bedrock", "Amazon Polly"]
        started = await quiz_service.start_session()
        question = started.firstQuestion

        for _ in range(4):
            result = await answer(quiz_service, started.sessionId, question)
            question = result.nextQuestion

            # Every generated question reports Amazon Bedrock as its topic
            assert "previously asked topics: Amazon Bedrock" in fake_llm.prompts[-1]
            assert "Focus specifically on: Amazon Polly" in fake_llm.prompts[-1]

    @pytest.mark.asyncio
    async def test_topic_falls_back_to_catalog_when_all_covered(self, quiz_service, fake_llm, settings):
        settings.quiz_topics = ["Amazon Bedrock"]
        started = await quiz_service.start_session()

        await answer(quiz_service, started.sessionId, started.firstQuestion)

        assert "Focus specifically on: Amazon Bedrock" in fake_llm.prompts[-1]

    @pytest.mark.asyncio
    async def test_generation_failure_leaves_session_unchanged(self, quiz_service, fake_llm):
        started = await quiz_service.start_session()
        fake_llm.queue("model overloaded, no question")

        with pytest.raises(NoJSONFoundError):
            await answer(quiz_service, started.sessionId, started.firstQuestion)

        status = await quiz_service.get_session_status(started.sessionId)
        assert status.currentQuestionIndex == 0
        assert status.correctAnswers == 0

        retry = await answer(quiz_service, started.sessionId, started.firstQuestion)
        assert retry.isCorrect is True
        assert retry.sessionProgress.currentQuestionIndex == 1

    @pytest.mark.parametrize("selected", [-1, 4])
    @pytest.mark.asyncio
    async def test_out_of_range_answer_is_validation_error(self, quiz_service, selected):
        started = await quiz_service.start_session()

        with pytest.raises(ValidationError):
            await quiz_service.submit_answer(started.sessionId, started.firstQuestion.id, selected)

    @pytest.mark.asyncio
    async def test_unknown_session(self, quiz_service):
        with pytest.raises(SessionNotFoundError):
            await quiz_service.submit_answer("session_missing", "q_missing", 0)

    @pytest.mark.asyncio
    async def test_submit_after_completion(self, quiz_service, settings):
        settings.total_questions = 1
        started = await quiz_service.start_session()
        await answer(quiz_service, started.sessionId, started.firstQuestion)

        with pytest.raises(QuizAlreadyCompletedError):
            await answer(quiz_service, started.sessionId, started.firstQuestion)

    @pytest.mark.asyncio
    async def test_concurrent_submits_are_serialized(self, quiz_service):
        started = await quiz_service.start_session()

        outcomes = await asyncio.gather(
            answer(quiz_service, started.sessionId, started.firstQuestion),
            answer(quiz_service, started.sessionId, started.firstQuestion),
            return_exceptions=True,
        )

        errors = [o for o in outcomes if isinstance(o, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], QuestionMismatchError)

        status = await quiz_service.get_session_status(started.sessionId)
        assert status.currentQuestionIndex == 1


class TestNextQuestion:

    @pytest.mark.asyncio
    async def test_returns_current_question_and_progress(self, quiz_service, clock):
        started = await quiz_service.start_session()
        clock.advance(600)

        result = await quiz_service.get_next_question(started.sessionId)

        assert result.question == started.firstQuestion
        assert result.progress.currentQuestion == 1
        assert result.progress.totalQuestions == 10
        assert result.progress.timeRemaining == 1200

    @pytest.mark.asyncio
    async def test_regenerates_missing_question(self, quiz_service, store, fake_llm):
        started = await quiz_service.start_session()
        session = await store.get(started.sessionId)
        session.currentQuestion = None
        await store.update(session)
        calls = len(fake_llm.prompts)

        result = await quiz_service.get_next_question(started.sessionId)

        assert len(fake_llm.prompts) == calls + 1
        assert result.question.id != started.firstQuestion.id
        assert result.question.questionNumber == 1
        stored = await store.get(started.sessionId)
        assert stored.currentQuestion.id == result.question.id

    @pytest.mark.asyncio
    async def test_missing_question_blocks_submission_until_regenerated(self, quiz_service, store):
        started = await quiz_service.start_session()
        session = await store.get(started.sessionId)
        session.currentQuestion = None
        await store.update(session)

        with pytest.raises(QuestionMismatchError):
            await answer(quiz_service, started.sessionId, started.firstQuestion)

    @pytest.mark.asyncio
    async def test_completed_session_has_no_next_question(self, quiz_service, settings):
        settings.total_questions = 1
        started = await quiz_service.start_session()
        await answer(quiz_service, started.sessionId, started.firstQuestion)

        with pytest.raises(QuizAlreadyCompletedError):
            await quiz_service.get_next_question(started.sessionId)

    @pytest.mark.asyncio
    async def test_time_remaining_never_negative(self, quiz_service, clock):
        started = await quiz_service.start_session()
        clock.advance(2000)

        result = await quiz_service.get_next_question(started.sessionId)

        assert result.progress.timeRemaining == 0


class TestResultsAndProgress:

    @pytest.mark.asyncio
    async def test_results_before_any_answer(self, quiz_service):
        started = await quiz_service.start_session()

        with pytest.raises(QuizNotStartedError):
            await quiz_service.get_results(started.sessionId)

    @pytest.mark.asyncio
    async def test_early_results(self, quiz_service, clock):
        started = await quiz_service.start_session()
        clock.advance(30)
        await answer(quiz_service, started.sessionId, started.firstQuestion)

        results = await quiz_service.get_results(started.sessionId)

        assert results.answeredQuestions == 1
        assert results.isCompleted is False
        assert results.accuracy == 10.0
        assert results.totalTime == 30
        assert results.difficultyBreakdown["beginner"].correct == 1

    @pytest.mark.asyncio
    async def test_progress_lists_answers(self, quiz_service):
        started = await quiz_service.start_session()
        result = await answer(quiz_service, started.sessionId, started.firstQuestion, correct=False)
        await answer(quiz_service, started.sessionId, result.nextQuestion)

        progress = await quiz_service.get_progress(started.sessionId)

        assert progress.currentQuestion == 2
        assert progress.correctAnswers == 1
        assert progress.score == 50
        assert [a.isCorrect for a in progress.answers] == [False, True]
        assert progress.answers[0].questionId == started.firstQuestion.id
        assert progress.answers[0].timeSpent == 12.5

    @pytest.mark.asyncio
    async def test_unknown_session_everywhere(self, quiz_service):
        for call in (
            quiz_service.get_results,
            quiz_service.get_progress,
            quiz_service.get_session_status,
            quiz_service.get_next_question,
            quiz_service.delete_session,
        ):
            with pytest.raises(SessionNotFoundError):
                await call("session_missing")


class TestDeleteAndStats:

    @pytest.mark.asyncio
    async def test_delete_session(self, quiz_service):
        started = await quiz_service.start_session()

        result = await quiz_service.delete_session(started.sessionId)

        assert result == {"sessionId": started.sessionId, "deleted": True}
        with pytest.raises(SessionNotFoundError):
            await quiz_service.get_session_status(started.sessionId)

    @pytest.mark.asyncio
    async def test_stats(self, quiz_service):
        await quiz_service.start_session()
        await quiz_service.start_session()

        assert await quiz_service.get_stats() == {"activeSessions": 2, "storage": "memory"}
