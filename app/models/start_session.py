"""
Start Session Request/Response Models
"""
from pydantic import BaseModel, Field
from typing import Optional

from app.models.quiz_sessions import DifficultyLevel, Question, QuizProgress


class StartSessionRequest(BaseModel):
    """Request model for starting a new quiz session"""
    difficulty: Optional[DifficultyLevel] = Field(
        None,
        description="Initial difficulty level (defaults to beginner)"
    )
    userId: Optional[str] = Field(None, max_length=200, description="Optional user identifier")

    class Config:
        json_schema_extra = {
            "example": {
                "difficulty": "beginner",
                "userId": "user_42"
            }
        }


class StartSessionResponse(BaseModel):
    """Response model for started quiz session"""
    sessionId: str = Field(..., description="Unique session identifier")
    totalQuestions: int = Field(..., description="Number of questions in the quiz")
    timeLimit: int = Field(..., description="Time limit in seconds")
    firstQuestion: Question = Field(..., description="First question of the quiz")


class NextQuestionResponse(BaseModel):
    """Current question together with the session progress"""
    question: Question
    progress: QuizProgress
