"""
Quiz Session Models
Question, answer and session records stored in the session store
"""
from datetime import datetime, timezone
from typing import Literal, Optional, List
from pydantic import BaseModel, Field
import uuid


DifficultyLevel = Literal["beginner", "intermediate", "advanced"]
DIFFICULTY_LEVELS: List[str] = ["beginner", "intermediate", "advanced"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_question_id() -> str:
    return f"q_{uuid.uuid4().hex[:16]}"


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex[:16]}"


class Question(BaseModel):
    """
    A generated multiple-choice question
    correctAnswer is the zero-based index of the right option after shuffling
    """
    id: str = Field(default_factory=new_question_id, description="Unique question identifier")
    question: str = Field(..., min_length=1, description="Question text")
    options: List[str] = Field(..., min_length=4, max_length=4, description="Exactly 4 answer options")
    correctAnswer: int = Field(..., ge=0, le=3, description="Index of the correct option (0-3)")
    explanation: str = Field(..., description="Why the correct answer is right")
    difficulty: DifficultyLevel = Field(..., description="Question difficulty")
    topic: str = Field(..., description="Main service or concept covered")
    domain: str = Field(..., description="Certification domain label")
    questionNumber: Optional[int] = Field(
        None,
        ge=1,
        description="1-based position of the question in the quiz"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "q_3f2a9c1b7e4d5a60",
                "question": "Which service provides managed foundation models through an API?",
                "options": ["Amazon Bedrock", "Amazon Polly", "Amazon Lex", "AWS Glue"],
                "correctAnswer": 0,
                "explanation": "Amazon Bedrock offers foundation models as a managed service.",
                "difficulty": "beginner",
                "topic": "Amazon Bedrock",
                "domain": "Generative AI",
                "questionNumber": 1
            }
        }


class UserAnswer(BaseModel):
    """Answer record appended to the session on submission"""
    questionId: str = Field(..., description="Question ID reference")
    selectedAnswer: int = Field(..., ge=0, le=3, description="Selected option index")
    isCorrect: bool = Field(..., description="Whether the answer was correct")
    timeSpent: float = Field(default=0, ge=0, description="Seconds spent on the question")
    timestamp: datetime = Field(default_factory=utcnow, description="When answered")
    difficulty: DifficultyLevel = Field(..., description="Difficulty of the answered question")
    topic: str = Field(default="General", description="Topic of the answered question")
    domain: str = Field(default="AI Services", description="Domain of the answered question")


class QuizSession(BaseModel):
    """Quiz session state, including the question awaiting an answer"""
    sessionId: str = Field(default_factory=new_session_id, description="Unique session identifier")
    currentQuestionIndex: int = Field(default=0, ge=0, description="Number of questions answered")
    totalQuestions: int = Field(default=10, ge=1, description="Fixed quiz length")
    score: int = Field(default=0, ge=0, le=100, description="Running score percentage")
    correctAnswers: int = Field(default=0, ge=0, description="Number of correct answers")
    answers: List[UserAnswer] = Field(default_factory=list, description="Answers in chronological order")
    difficulty: DifficultyLevel = Field(default="beginner", description="Nominal session difficulty")
    startTime: datetime = Field(default_factory=utcnow, description="Session start")
    endTime: Optional[datetime] = Field(None, description="Set when the quiz completes")
    isCompleted: bool = Field(default=False, description="Whether all questions are answered")
    userId: Optional[str] = Field(None, description="Optional user identifier")
    currentQuestion: Optional[Question] = Field(
        None,
        description="Question awaiting an answer (PRIVATE: includes the correct answer)"
    )
    version: int = Field(default=0, ge=0, description="Incremented on every stored update")

    @property
    def answered_question_ids(self) -> List[str]:
        return [answer.questionId for answer in self.answers]

    @property
    def answered_topics(self) -> List[str]:
        return [answer.topic for answer in self.answers]


class QuizProgress(BaseModel):
    """Progress snapshot returned alongside questions"""
    currentQuestion: int = Field(..., description="1-based number of the question being answered")
    totalQuestions: int
    correctAnswers: int
    score: int
    timeRemaining: int = Field(..., description="Seconds left in the time limit")


class SessionProgress(BaseModel):
    """Session counters returned after each answer"""
    currentQuestionIndex: int
    totalQuestions: int
    score: int
    correctAnswers: int


class AnswerSummary(BaseModel):
    questionId: str
    isCorrect: bool
    timeSpent: float


class QuizProgressResponse(BaseModel):
    """Full progress projection of a session"""
    sessionId: str
    currentQuestion: int = Field(..., description="Number of questions answered so far")
    totalQuestions: int
    correctAnswers: int
    score: int
    timeRemaining: int
    isCompleted: bool
    answers: List[AnswerSummary]


class QuizSessionStatus(BaseModel):
    """Public session fields (no correct answers exposed)"""
    sessionId: str
    currentQuestionIndex: int
    totalQuestions: int
    score: int
    correctAnswers: int
    difficulty: DifficultyLevel
    isCompleted: bool
    startTime: datetime
    endTime: Optional[datetime] = None
    userId: Optional[str] = None
