from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List

class Settings(BaseSettings):
    """
    Application settings.
    Values are loaded from environment variables and/or a .env file
    in the current working directory.
    """
    # --- Core Settings ---
    DATABASE_URL: str
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "Nephslair API"
    DEBUG_MODE: bool = False

    # --- Auth ---
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # --- Rate Limiter ---
    REDIS_URL: Optional[str] = None
    VOTE_RATE_LIMIT: str = "30/minute"
    COMMENT_RATE_LIMIT: str = "20/minute"

    # --- Static downloads ---
    DOWNLOADS_DIR: str = "downloads"

    # --- CORS ---
    # Comma-separated string in .env, e.g. "http://localhost:5173,http://127.0.0.1:5173"
    CORS_ALLOWED_ORIGINS_STR: Optional[str] = ""

    @property
    def CORS_ALLOWED_ORIGINS(self) -> List[str]:
        if self.CORS_ALLOWED_ORIGINS_STR:
            return [origin.strip() for origin in self.CORS_ALLOWED_ORIGINS_STR.split(",") if origin.strip()]
        return []

    model_config = SettingsConfigDict(
        env_file=".env",
        extra='ignore',
        env_file_encoding='utf-8'
    )

settings = Settings()
