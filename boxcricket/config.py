"""
Service configuration
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Settings from environment variables"""

    # Storage
    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "boxcricket.db")

    # JWT settings
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))  # one match day

    # HTTP
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Match defaults when the creator leaves them out
    DEFAULT_OVERS: int = int(os.getenv("DEFAULT_OVERS", "6"))
    DEFAULT_PLAYERS_PER_TEAM: int = int(os.getenv("DEFAULT_PLAYERS_PER_TEAM", "6"))

    # Optimistic-lock retries for a scoring call
    SCORING_MAX_RETRIES: int = int(os.getenv("SCORING_MAX_RETRIES", "3"))


settings = Settings()
