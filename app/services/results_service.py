"""
Results Service
Final results and per-domain / per-difficulty breakdowns for a quiz session
"""
from datetime import datetime
from typing import Dict, Iterable, Tuple

from app.models.quiz_results import BreakdownEntry, QuizResults
from app.models.quiz_sessions import QuizSession
from app.services.adaptive_difficulty import recommend_next_level

FEEDBACK_BANDS = [
    (80.0, "Excellent work! You have a strong command of this material."),
    (60.0, "Good job! Review the questions you missed to solidify your understanding."),
    (40.0, "You're on track. Focus on the domains where you scored lowest and try again."),
]
KEEP_LEARNING = "Keep learning! Revisit the fundamentals and take the quiz again."


def feedback_for_accuracy(accuracy: float) -> str:
    """Feedback message for an accuracy percentage"""
    for threshold, message in FEEDBACK_BANDS:
        if accuracy >= threshold:
            return message
    return KEEP_LEARNING


def _percentage(correct: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(correct / total * 100, 1)


def _breakdown(pairs: Iterable[Tuple[str, bool]]) -> Dict[str, BreakdownEntry]:
    counts: Dict[str, Tuple[int, int]] = {}
    for key, is_correct in pairs:
        correct, total = counts.get(key, (0, 0))
        counts[key] = (correct + int(is_correct), total + 1)

    return {
        key: BreakdownEntry(correct=correct, total=total, accuracy=_percentage(correct, total))
        for key, (correct, total) in counts.items()
    }


def compute_final_results(session: QuizSession, now: datetime) -> QuizResults:
    """
    Build the results view of a session

    Accuracy is measured against the full quiz length, so an unfinished quiz
    scores unanswered questions as wrong. Breakdowns use the domain and
    difficulty recorded with each answer.

    Args:
        session: Completed session, or an open one with at least one answer
        now: Current time, used as the end when the quiz is still open

    Returns:
        QuizResults
    """
    accuracy = _percentage(session.correctAnswers, session.totalQuestions)

    end = session.endTime or now
    total_time = max(0, int((end - session.startTime).total_seconds()))

    return QuizResults(
        sessionId=session.sessionId,
        totalQuestions=session.totalQuestions,
        answeredQuestions=len(session.answers),
        correctAnswers=session.correctAnswers,
        score=session.score,
        accuracy=accuracy,
        totalTime=total_time,
        averageTimePerQuestion=round(total_time / session.totalQuestions, 1),
        difficulty=session.difficulty,
        isCompleted=session.isCompleted,
        topicBreakdown=_breakdown((a.domain, a.isCorrect) for a in session.answers),
        difficultyBreakdown=_breakdown((a.difficulty, a.isCorrect) for a in session.answers),
        recommendedNextLevel=recommend_next_level(session.difficulty, accuracy),
        feedback=feedback_for_accuracy(accuracy)
    )
