"""
Quiz Error Taxonomy
Every failure the API can report, with its error code and HTTP status
"""
from typing import Any, Optional


class QuizAppError(Exception):
    """Base exception for all quiz application errors"""

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(QuizAppError):
    """Raised when request fields are missing or out of range"""
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid request"


class SessionNotFoundError(QuizAppError):
    """Raised when a session does not exist or has expired"""
    code = "SESSION_NOT_FOUND"
    status_code = 404
    default_message = "Quiz session not found"


class QuestionMismatchError(QuizAppError):
    """Raised when the submitted question is not the session's current question"""
    code = "QUESTION_MISMATCH"
    status_code = 409
    default_message = "Submitted question is not the current question for this session"


class QuizAlreadyCompletedError(QuizAppError):
    """Raised when an operation requires an open quiz"""
    code = "QUIZ_ALREADY_COMPLETED"
    status_code = 409
    default_message = "Quiz already completed"


class QuizNotStartedError(QuizAppError):
    """Raised when results are requested before any answer"""
    code = "QUIZ_NOT_STARTED"
    status_code = 400
    default_message = "No questions have been answered yet"


class GenerationError(QuizAppError):
    """Base exception for question generation failures"""
    code = "GENERATION_FAILED"
    status_code = 502
    default_message = "Failed to generate a quiz question"


class ModelUnavailableError(GenerationError):
    """Raised when the model is unreachable, times out, or returns no body"""
    code = "MODEL_UNAVAILABLE"


class NoJSONFoundError(GenerationError):
    """Raised when the model reply contains no JSON object"""
    code = "NO_JSON_FOUND"


class MalformedJSONError(GenerationError):
    """Raised when JSON cannot be parsed even after sanitizing"""
    code = "MALFORMED_JSON"


class SchemaViolationError(GenerationError):
    """Raised when the parsed question fails validation"""
    code = "SCHEMA_VIOLATION"


class SessionCreationError(QuizAppError):
    """Raised when a quiz session cannot be started"""
    code = "SESSION_CREATION_FAILED"
    status_code = 502
    default_message = "Failed to start quiz session"


class StoreError(QuizAppError):
    """Raised when the session store is unreachable or a write conflicts"""
    code = "STORE_FAILURE"
    status_code = 500
    default_message = "Session storage failure"
