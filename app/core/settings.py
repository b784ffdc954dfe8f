"""
Core settings and environment variables for Tourist Safety Hub.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "Tourist Safety Hub"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Dashboard and mobile web origins allowed to access this API
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173"

    # Firebase/Firestore (also the identity provider for bearer tokens)
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON

    # In-memory document store for local development and tests
    USE_MOCK_DB: bool = False

    # SOS handling
    EMERGENCY_RESPONSE_ETA: str = "5-8 minutes"  # Static, NOT a dispatch estimate

    # Listing defaults
    DEFAULT_PAGE_LIMIT: int = 10
    AUTHORITY_PAGE_LIMIT: int = 20
    NEARBY_DEFAULT_RADIUS_METERS: int = 5000

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"  # Allow extra env vars to prevent crashes

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
