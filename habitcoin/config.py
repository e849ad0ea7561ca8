from typing import List, Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings."""

    # API
    API_TITLE: str = "Habitcoin Backend"
    API_VERSION: str = "1.0.0"
    DEBUG: bool = False
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Database
    DATABASE_URL: str = "sqlite:///./habitcoin.db"

    # Calendar days are UTC-truncated unless the account has its own timezone
    DEFAULT_TIMEZONE: str = "UTC"

    # Firebase auth
    FIREBASE_CREDENTIALS_JSON: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None
    REQUIRE_FIREBASE: bool = False

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }

settings = Settings()
