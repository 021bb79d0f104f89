"""
Adaptive Difficulty Module
Chooses the next question's difficulty from quiz position and running accuracy
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from app.models.quiz_sessions import DIFFICULTY_LEVELS, DifficultyLevel, QuizSession

logger = logging.getLogger(__name__)

PROMOTE_THRESHOLD = 80.0
HOLD_THRESHOLD = 60.0

# Accuracy needed at a nominal level before recommending the next one
RECOMMENDATION_THRESHOLDS = {
    "beginner": 75.0,
    "intermediate": 80.0,
}


class AdaptiveDifficultyError(ValueError):
    """Custom exception for adaptive difficulty errors"""
    pass


@dataclass(frozen=True)
class DifficultyRanges:
    """
    Question positions (1-based, inclusive) mapped to a base difficulty.

    The three ranges must be contiguous, non-overlapping, and together cover
    1..total_questions.
    """
    beginner: Tuple[int, int] = (1, 3)
    intermediate: Tuple[int, int] = (4, 7)
    advanced: Tuple[int, int] = (8, 10)

    def validate(self, total_questions: int) -> None:
        """
        Check that the ranges partition 1..total_questions

        Raises:
            AdaptiveDifficultyError: If the ranges overlap, leave gaps, or
                do not end at total_questions
        """
        expected_start = 1
        for name, (start, end) in (
            ("beginner", self.beginner),
            ("intermediate", self.intermediate),
            ("advanced", self.advanced),
        ):
            if start != expected_start or end < start:
                raise AdaptiveDifficultyError(
                    f"Invalid {name} range {start}-{end}: "
                    f"expected a range starting at {expected_start}"
                )
            expected_start = end + 1

        if self.advanced[1] != total_questions:
            raise AdaptiveDifficultyError(
                f"Difficulty ranges end at {self.advanced[1]} "
                f"but the quiz has {total_questions} questions"
            )

    def base_for_position(self, position: int) -> DifficultyLevel:
        """Base difficulty for a 1-based question position"""
        if self.beginner[0] <= position <= self.beginner[1]:
            return "beginner"
        if self.intermediate[0] <= position <= self.intermediate[1]:
            return "intermediate"
        return "advanced"


DEFAULT_RANGES = DifficultyRanges()


def _shift(level: str, steps: int) -> DifficultyLevel:
    """Move along the difficulty scale, saturating at both ends"""
    index = DIFFICULTY_LEVELS.index(level)
    new_index = max(0, min(index + steps, len(DIFFICULTY_LEVELS) - 1))
    return DIFFICULTY_LEVELS[new_index]


def next_difficulty(
    session: QuizSession,
    ranges: DifficultyRanges = DEFAULT_RANGES
) -> DifficultyLevel:
    """
    Difficulty for the session's upcoming question.

    Adaptive logic:
    - No answers yet: the session's nominal difficulty
    - Otherwise a base level from the upcoming question's position, then:
      - accuracy >= 80%: one level above base
      - 60% <= accuracy < 80%: base
      - accuracy < 60%: one level below base

    Args:
        session: Session state (currentQuestionIndex = questions answered)
        ranges: Position ranges for the base difficulty

    Returns:
        Difficulty level as a string

    Examples:
        Position 4 is intermediate by default, so after 3 answers:
        3/3 correct → advanced, 2/3 correct → intermediate, 1/3 → beginner
    """
    answered = session.currentQuestionIndex
    if answered == 0:
        return session.difficulty

    correct_pct = session.correctAnswers / answered * 100
    position = answered + 1
    base = ranges.base_for_position(position)

    if correct_pct >= PROMOTE_THRESHOLD:
        level = _shift(base, 1)
    elif correct_pct >= HOLD_THRESHOLD:
        level = base
    else:
        level = _shift(base, -1)

    logger.debug(
        f"📊 Next difficulty for question {position}: base={base}, "
        f"accuracy={correct_pct:.1f}% → {level}"
    )

    return level


def recommend_next_level(
    difficulty: str,
    accuracy: float
) -> Optional[DifficultyLevel]:
    """
    Recommend a harder nominal level after a strong result.

    - beginner → intermediate at >= 75%
    - intermediate → advanced at >= 80%

    Returns:
        Recommended difficulty, or None when staying put
    """
    threshold = RECOMMENDATION_THRESHOLDS.get(difficulty)
    if threshold is None or accuracy < threshold:
        return None

    recommended = _shift(difficulty, 1)
    logger.info(f"🎯 Accuracy {accuracy:.1f}% at {difficulty} → recommending: {recommended}")
    return recommended
