"""
Application configuration settings
FILE: app/core/config.py
"""
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # API Configuration
    app_name: str = "Adaptive Quiz API"
    api_prefix: str = "/api/v1"
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # LLM Configuration
    llm_provider: Literal["openai", "anthropic", "grok"] = "anthropic"
    llm_model: Optional[str] = None
    llm_timeout_seconds: float = 60.0
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2000
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    grok_api_key: Optional[str] = None

    # Quiz Configuration
    quiz_subject: str = "AWS AI Practitioner certification"
    total_questions: int = 10
    time_limit_minutes: int = 30
    beginner_range: List[int] = [1, 3]
    intermediate_range: List[int] = [4, 7]
    advanced_range: List[int] = [8, 10]
    quiz_domains: List[str] = [
        "Machine Learning Fundamentals",
        "AI Services",
        "Responsible AI",
        "Generative AI",
    ]
    quiz_topics: List[str] = [
        "Amazon SageMaker",
        "Amazon Bedrock",
        "Amazon Rekognition",
        "Amazon Textract",
        "Amazon Comprehend",
        "Amazon Polly",
        "Amazon Lex",
        "Machine Learning Fundamentals",
        "Responsible AI",
        "Model Training and Deployment",
        "Data Preparation",
    ]

    # Session Store Configuration
    session_store: Literal["memory", "mongodb"] = "memory"
    session_ttl_hours: int = 24
    store_timeout_ms: int = 5000

    # MongoDB Configuration
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "quiz_app"
    sessions_collection: str = "quiz_sessions"

    class Config:
        env_file = ".env"
        case_sensitive = False  # This allows case-insensitive matching
        extra = "allow"  # This allows extra fields

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def time_limit_seconds(self) -> int:
        return self.time_limit_minutes * 60

    @property
    def memory_session_ttl_seconds(self) -> int:
        """In-memory sessions live for twice the quiz time limit"""
        return self.time_limit_seconds * 2

    @property
    def durable_session_ttl_seconds(self) -> int:
        return self.session_ttl_hours * 60 * 60


settings = Settings()
