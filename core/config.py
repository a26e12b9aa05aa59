"""
ROBOSTORE Configuration

Environment variables and application settings.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "ROBOSTORE"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"  # development, production

    # Firebase (document database)
    FIREBASE_PROJECT_ID: str = "robostore"
    FIREBASE_CREDENTIALS_PATH: str = "service-account.json"
    USE_IN_MEMORY_DB: bool = False

    # CORS
    CORS_ORIGINS: List[str] = [
        "https://robot-ecommerce.vercel.app",
        "https://robot-ecommerce-1.onrender.com",
        "http://localhost:5173",
    ]

    # Auth
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_HOURS: int = 24 * 7
    AUTH_COOKIE_NAME: str = "token"
    BCRYPT_ROUNDS: int = 10

    # Google OAuth
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GOOGLE_REDIRECT_URI: str = "http://localhost:5000/auth/google/callback"
    FRONTEND_URL: str = "http://localhost:5173"

    # Orders
    ORDER_PROCESSING_DELAY_SECONDS: float = 2.0

    # Thread Pool
    THREAD_POOL_SIZE: int = 2

    # Playground (pose-to-joint pipeline)
    FRAME_THROTTLE_MS: int = 16
    RECORDING_INTERVAL_MS: int = 33
    PLAYBACK_GRACE_MS: int = 1000
    JOINT_UPDATE_THRESHOLD: float = 0.01
    JOINT_APPLY_EPSILON: float = 0.001
    POSE_MODEL_COMPLEXITY: int = 1
    POSE_MIN_DETECTION_CONFIDENCE: float = 0.5
    POSE_MIN_TRACKING_CONFIDENCE: float = 0.5

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def cookie_options(self) -> dict:
        """Cookie flags for the auth cookie (cross-site in production)."""
        return {
            "httponly": True,
            "samesite": "none" if self.is_production else "lax",
            "secure": self.is_production,
        }

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
