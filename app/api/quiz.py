"""
Quiz API Routes
FastAPI endpoints for quiz sessions, questions, answers and results

Errors raised by the service are QuizAppError subclasses; the exception
handlers in app/main.py turn them into error envelopes.
"""
from fastapi import APIRouter, Depends, Request, status
from typing import Optional
import logging

from app.models.api_response import success_payload
from app.models.start_session import StartSessionRequest
from app.models.submit_answer import SubmitAnswerRequest
from app.services.quiz_service import QuizService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quiz", tags=["Quiz"])


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

def get_quiz_service(request: Request) -> QuizService:
    """Dependency to get the QuizService built at startup"""
    return request.app.state.quiz_service


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.post(
    "/start",
    status_code=status.HTTP_201_CREATED,
    summary="Start a new quiz session",
    description="""
    Create a quiz session and generate its first question.

    **Defaults:**
    - Difficulty: beginner
    - Questions: 10
    - Time limit: 30 minutes
    """
)
async def start_quiz(
    request: Optional[StartSessionRequest] = None,
    service: QuizService = Depends(get_quiz_service)
):
    request = request or StartSessionRequest()
    logger.info(f"📨 Start quiz request - Difficulty: {request.difficulty or 'beginner'}")
    result = await service.start_session(
        difficulty=request.difficulty,
        user_id=request.userId
    )
    return success_payload(result)


@router.get(
    "/session/{session_id}",
    summary="Get session status"
)
async def get_session(
    session_id: str,
    service: QuizService = Depends(get_quiz_service)
):
    return success_payload(await service.get_session_status(session_id))


@router.delete(
    "/session/{session_id}",
    summary="Delete a quiz session"
)
async def delete_session(
    session_id: str,
    service: QuizService = Depends(get_quiz_service)
):
    return success_payload(await service.delete_session(session_id))


@router.get(
    "/question/{session_id}",
    summary="Get the current question",
    description="Returns the question awaiting an answer, generating it if the session has none."
)
async def get_question(
    session_id: str,
    service: QuizService = Depends(get_quiz_service)
):
    return success_payload(await service.get_next_question(session_id))


@router.post(
    "/answer",
    summary="Submit an answer",
    description="""
    Grade the answer to the current question.

    **Returns:**
    - Whether the answer was correct, the correct index and an explanation
    - The next question while the quiz continues
    - Final results once the last question is answered
    """
)
async def submit_answer(
    request: SubmitAnswerRequest,
    service: QuizService = Depends(get_quiz_service)
):
    result = await service.submit_answer(
        session_id=request.sessionId,
        question_id=request.questionId,
        selected_answer=request.selectedAnswer,
        time_spent=request.timeSpent or 0
    )
    return success_payload(result)


@router.get(
    "/results/{session_id}",
    summary="Get quiz results"
)
async def get_results(
    session_id: str,
    service: QuizService = Depends(get_quiz_service)
):
    return success_payload(await service.get_results(session_id))


@router.get(
    "/progress/{session_id}",
    summary="Get quiz progress"
)
async def get_progress(
    session_id: str,
    service: QuizService = Depends(get_quiz_service)
):
    return success_payload(await service.get_progress(session_id))


@router.get(
    "/stats",
    summary="Session statistics"
)
async def get_stats(service: QuizService = Depends(get_quiz_service)):
    return success_payload(await service.get_stats())
