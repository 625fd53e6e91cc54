from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    STORE_BACKEND: str = "memory"  # 'memory' or 'redis'
    REDIS_URL: str = "redis://127.0.0.1:6379"
    # Seat kept for a disconnected player before they are removed for good
    ABSENCE_GRACE_SECONDS: int = 300
    SAVE_RETRY_LIMIT: int = 5
    WEB_ORIGIN: str = "http://localhost:3000"
    SECURE_COOKIES: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
