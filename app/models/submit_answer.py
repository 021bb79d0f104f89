from pydantic import BaseModel, Field, field_validator
from typing import Optional

from app.models.quiz_sessions import Question, SessionProgress
from app.models.quiz_results import QuizResults


class SubmitAnswerRequest(BaseModel):
    """Request model for answer submission"""
    sessionId: str = Field(..., min_length=1, description="Quiz session ID")
    questionId: str = Field(..., min_length=1, description="Question ID being answered")
    selectedAnswer: int = Field(..., description="Index of the selected option (0-3)")
    timeSpent: Optional[float] = Field(
        default=0,
        ge=0,
        description="Seconds spent on the question"
    )

    @field_validator('selectedAnswer')
    @classmethod
    def validate_answer_range(cls, v):
        """Validate that answer is an option index between 0 and 3"""
        if v < 0 or v > 3:
            raise ValueError("selectedAnswer must be between 0 and 3")
        return v

    @field_validator('sessionId', 'questionId')
    @classmethod
    def strip_ids(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("identifier cannot be empty")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "sessionId": "session_3f2a9c1b7e4d5a60",
                "questionId": "q_9b1d4e6f2a3c7d80",
                "selectedAnswer": 2,
                "timeSpent": 14.5
            }
        }


class SubmitAnswerResponse(BaseModel):
    """Response model for answer evaluation"""
    isCorrect: bool = Field(..., description="Whether the answer was correct")
    correctAnswer: int = Field(..., description="Index of the correct option")
    explanation: str = Field(..., description="Explanation of the correct answer")
    sessionProgress: SessionProgress
    isQuizCompleted: bool = Field(..., description="Whether this answer finished the quiz")
    nextQuestion: Optional[Question] = Field(
        None,
        description="Next question (only while the quiz continues)"
    )
    finalResults: Optional[QuizResults] = Field(
        None,
        description="Final results (only when the quiz is completed)"
    )
