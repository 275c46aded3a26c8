"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Supabase
    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str

    # JWT
    JWT_SECRET: str
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # LLM
    GROQ_API_KEY: str = ""
    GOOGLE_AI_API_KEY: str = ""
    TITLE_MODEL: str = "gemini-2.0-flash-001"
    TITLE_PROVIDER: str = "google"
    CONTEXT_MAX_TOKENS: int = 6000

    # Quotas per tier
    ANONYMOUS_CREDITS: int = 10
    ANONYMOUS_SEARCH: int = 0
    ANONYMOUS_RESEARCH: int = 0
    FREE_CREDITS: int = 50
    FREE_SEARCH: int = 5
    FREE_RESEARCH: int = 0
    PRO_CREDITS: int = 1500
    PRO_SEARCH: int = 200
    PRO_RESEARCH: int = 20

    # Resumable streams
    STREAM_RETRY_ATTEMPTS: int = 3
    STREAM_RETRY_BASE_DELAY: float = 0.2
    STREAM_TTL_SECONDS: int = 300

    # CORS
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    LOG_LEVEL: str = "INFO"

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache()
def get_settings() -> Settings:
    return Settings()
