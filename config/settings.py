"""
환경 설정 관리
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # AI Provider 설정
    AI_PROVIDER: str = "mock"

    # OpenAI 설정
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_MAX_TOKENS: int = 1500

    # Gemini 설정
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"

    # 등급별 일일 요청 제한
    GUEST_DAILY_LIMIT: int = 3
    FREE_DAILY_LIMIT: int = 10
    PREMIUM_DAILY_LIMIT: int = 100
    GLOBAL_HOURLY_LIMIT: int = 1000

    # 검증 재시도
    MAX_RETRIES: int = 3
    RETRY_DELAY_MS: int = 1000

    # 저장소 설정
    STORAGE_BACKEND: str = "memory"
    POSTGREST_URL: str = ""
    POSTGREST_API_KEY: str = ""

    INTERNAL_API_KEY: str = "story-internal-dev-key"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    def get_available_providers(self) -> dict:
        """사용 가능한 Provider 목록"""
        return {
            "openai": bool(self.OPENAI_API_KEY),
            "gemini": bool(self.GEMINI_API_KEY),
            "mock": True
        }

    def get_current_provider_info(self) -> dict:
        if self.AI_PROVIDER == "openai" and self.OPENAI_API_KEY:
            return {
                "provider": "openai",
                "model": self.OPENAI_MODEL,
                "status": "configured"
            }
        elif self.AI_PROVIDER == "gemini" and self.GEMINI_API_KEY:
            return {
                "provider": "gemini",
                "model": self.GEMINI_MODEL,
                "status": "configured"
            }
        else:
            return {
                "provider": "mock",
                "model": "mock_generator",
                "status": "fallback"
            }

    def get_daily_limits(self) -> dict:
        return {
            "guest": self.GUEST_DAILY_LIMIT,
            "free": self.FREE_DAILY_LIMIT,
            "premium": self.PREMIUM_DAILY_LIMIT,
        }

    def validate_settings(self) -> list:
        """설정 검증, 경고 목록 반환"""
        warnings = []

        if self.AI_PROVIDER not in ["mock", "openai", "gemini"]:
            warnings.append(f"Unknown AI_PROVIDER: {self.AI_PROVIDER}")

        if self.AI_PROVIDER == "openai" and not self.OPENAI_API_KEY:
            warnings.append("OpenAI selected but no API key is set.")

        if self.AI_PROVIDER == "gemini" and not self.GEMINI_API_KEY:
            warnings.append("Gemini selected but no API key is set.")

        if self.STORAGE_BACKEND not in ["memory", "postgrest"]:
            warnings.append(f"Unknown STORAGE_BACKEND: {self.STORAGE_BACKEND}")

        if self.STORAGE_BACKEND == "postgrest" and not self.POSTGREST_URL:
            warnings.append("PostgREST storage selected but POSTGREST_URL is empty.")

        if not (self.GUEST_DAILY_LIMIT <= self.FREE_DAILY_LIMIT <= self.PREMIUM_DAILY_LIMIT):
            warnings.append("Daily limits should grow from guest to free to premium.")

        if self.MAX_RETRIES < 1:
            warnings.append("MAX_RETRIES must be at least 1.")

        return warnings


_settings = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
