"""
Adaptive Quiz API - Main Application
FILE: app/main.py
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging
import time
import uuid

from app.api.quiz import router as quiz_router
from app.core.config import Settings, settings as default_settings
from app.core.errors import QuizAppError
from app.models.api_response import error_payload, iso_timestamp
from app.services.quiz_service import QuizService, build_quiz_service

# Configure logging
logging.basicConfig(
    level=default_settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


def _validation_details(exc: RequestValidationError) -> list:
    return [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", ""),
            "type": error.get("type", "")
        }
        for error in exc.errors()
    ]


def create_app(
    settings: Optional[Settings] = None,
    quiz_service: Optional[QuizService] = None
) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        settings: Application settings (environment-loaded by default)
        quiz_service: Prebuilt service, mainly for tests (wired from settings by default)

    Returns:
        Configured FastAPI app
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        logger.info(f"🚀 Starting {settings.app_name}...")

        try:
            if app.state.quiz_service is None:
                app.state.quiz_service = build_quiz_service(settings)

            store = app.state.quiz_service.store
            await store.connect()
            logger.info(f"✓ Session store ready ({store.backend_name})")

        except Exception as e:
            logger.error(f"❌ Startup error: {e}")
            raise

        yield

        logger.info(f"🛑 Shutting down {settings.app_name}...")

        try:
            await app.state.quiz_service.store.close()
            logger.info("✓ Cleanup complete")
        except Exception as e:
            logger.error(f"❌ Shutdown error: {e}")

    app = FastAPI(
        title=settings.app_name,
        description="""
        Adaptive multiple-choice quiz API.

        ## Features
        - **Sessions**: Fixed-length quizzes with a time limit
        - **Generated Questions**: One question at a time from a hosted language model
        - **Adaptive Difficulty**: Each question adjusts to position and running accuracy
        - **Results**: Score, per-domain and per-difficulty breakdowns, feedback

        ## Endpoints
        - **Quiz**: `/api/v1/quiz/*` - start, question, answer, results, progress
        - **Health**: `/health` - Model and session store status
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.settings = settings
    app.state.quiz_service = quiz_service

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def unhandled_error_response(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"❌ Unhandled error on {request.method} {request.url.path} "
            f"[{_request_id(request)}]: {exc}",
            exc_info=exc
        )
        details = None if settings.is_production else str(exc)
        return JSONResponse(
            status_code=500,
            content=error_payload("INTERNAL_SERVER_ERROR", "An unexpected error occurred", details)
        )

    # Request logging middleware (innermost; unhandled errors become the
    # 500 envelope here so the outer layers still add their headers)
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming requests"""
        logger.info(f"📨 {request.method} {request.url.path} [{_request_id(request)}]")
        try:
            response = await call_next(request)
        except Exception as e:
            response = unhandled_error_response(request, e)
        logger.info(
            f"📤 {request.method} {request.url.path} - "
            f"Status: {response.status_code} [{_request_id(request)}]"
        )
        return response

    # Request timing middleware
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time to response headers"""
        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000  # Convert to ms
        response.headers["X-Process-Time-Ms"] = str(round(process_time, 2))
        return response

    # Request ID middleware (outermost, so every other layer can read it)
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    # ==================== EXCEPTION HANDLERS ====================

    @app.exception_handler(QuizAppError)
    async def quiz_error_handler(request: Request, exc: QuizAppError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"❌ {exc.code} on {request.method} {request.url.path}: {exc.message} "
            f"[{_request_id(request)}]"
        )
        details = None if settings.is_production else exc.details
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(exc.code, exc.message, details)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            f"⚠️ Invalid request on {request.method} {request.url.path} "
            f"[{_request_id(request)}]"
        )
        details = None if settings.is_production else _validation_details(exc)
        return JSONResponse(
            status_code=400,
            content=error_payload("VALIDATION_ERROR", "Invalid request", details)
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        return unhandled_error_response(request, exc)

    # ==================== INCLUDE ROUTERS ====================

    app.include_router(quiz_router, prefix=settings.api_prefix)

    # ==================== ROOT ENDPOINTS ====================

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information"""
        return {
            "message": settings.app_name,
            "version": app.version,
            "status": "operational",
            "endpoints": {
                "docs": "/docs",
                "redoc": "/redoc",
                "quiz": f"{settings.api_prefix}/quiz",
                "health": "/health"
            }
        }

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Health check for the model provider and the session store

        Returns:
            {status, services: {model, store}}, with HTTP 503 when degraded
        """
        service: QuizService = request.app.state.quiz_service

        model_status = service.generator.llm_client.health_check()["status"]

        try:
            store_healthy = await service.store.health_check()
        except Exception as e:
            logger.error(f"❌ Session store health check failed: {e}")
            store_healthy = False

        overall_healthy = model_status == "ready" and store_healthy

        health_status = {
            "status": "healthy" if overall_healthy else "degraded",
            "timestamp": iso_timestamp(),
            "services": {
                "model": model_status,
                "store": "healthy" if store_healthy else "unhealthy"
            }
        }

        return JSONResponse(
            status_code=200 if overall_healthy else 503,
            content=health_status
        )

    return app


app = create_app()


# ==================== RUN APPLICATION ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info"
    )
