import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()

# Harm categories the evaluator request carries thresholds for
SAFETY_CATEGORIES = [
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
]


class Settings(BaseModel):
    env: str = os.getenv("ENV", "development")
    port: int = int(os.getenv("PORT", "8000"))
    allowed_origins: list[str] = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Evaluator
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    evaluator_backend: str = os.getenv("EVALUATOR_BACKEND", "openai")  # "openai" or "reference"
    evaluator_temperature: float = float(os.getenv("EVALUATOR_TEMPERATURE", "0.2"))
    evaluator_timeout: float = float(os.getenv("EVALUATOR_TIMEOUT", "30"))
    safety_threshold: str = os.getenv("SAFETY_THRESHOLD", "BLOCK_MEDIUM_AND_ABOVE")

    # Lesson languages
    source_language: str = os.getenv("SOURCE_LANGUAGE", "Vietnamese")
    target_language: str = os.getenv("TARGET_LANGUAGE", "English")
    feedback_language: str = os.getenv("FEEDBACK_LANGUAGE", "Vietnamese")

    # Session registry bounds
    max_sessions: int = int(os.getenv("MAX_SESSIONS", "1000"))
    session_ttl: float = float(os.getenv("SESSION_TTL_SECONDS", "3600"))

    enable_performance_tracking: bool = os.getenv("ENABLE_PERFORMANCE_TRACKING", "false").lower() in ("1", "true", "yes")

    def safety_settings(self) -> dict[str, str]:
        return {category: self.safety_threshold for category in SAFETY_CATEGORIES}


settings = Settings()
