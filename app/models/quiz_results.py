"""
Quiz Results Models
"""
from pydantic import BaseModel, Field
from typing import Dict, Optional

from app.models.quiz_sessions import DifficultyLevel


class BreakdownEntry(BaseModel):
    """Correct/total counts for one domain or difficulty"""
    correct: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    accuracy: float = Field(..., ge=0, le=100, description="Percentage correct (0-100)")


class QuizResults(BaseModel):
    """Final (or early) results for a quiz session"""
    sessionId: str
    totalQuestions: int
    answeredQuestions: int
    correctAnswers: int
    score: int = Field(..., description="Running score percentage over answered questions")
    accuracy: float = Field(..., description="Correct answers over total questions, in percent")
    totalTime: int = Field(..., description="Elapsed seconds")
    averageTimePerQuestion: float = Field(..., description="Elapsed seconds per question")
    difficulty: DifficultyLevel
    isCompleted: bool
    topicBreakdown: Dict[str, BreakdownEntry]
    difficultyBreakdown: Dict[str, BreakdownEntry]
    recommendedNextLevel: Optional[DifficultyLevel] = None
    feedback: str

    class Config:
        json_schema_extra = {
            "example": {
                "sessionId": "session_3f2a9c1b7e4d5a60",
                "totalQuestions": 10,
                "answeredQuestions": 10,
                "correctAnswers": 8,
                "score": 80,
                "accuracy": 80.0,
                "totalTime": 412,
                "averageTimePerQuestion": 41.2,
                "difficulty": "beginner",
                "isCompleted": True,
                "topicBreakdown": {
                    "AI Services": {"correct": 3, "total": 4, "accuracy": 75.0}
                },
                "difficultyBreakdown": {
                    "beginner": {"correct": 3, "total": 3, "accuracy": 100.0}
                },
                "recommendedNextLevel": "intermediate",
                "feedback": "Excellent work! You have a strong command of this material."
            }
        }
