"""
Configuration settings for Peer Verification API Service.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # API Settings
    app_name: str = "Peer Verification API"
    app_version: str = "0.1.0"
    debug: bool = False
    
    # Database
    database_url: str = "sqlite:///./peer_verification.db"
    
    # Catalog administration
    admin_identity: str = "admin"  # Only identity allowed to create competencies
    
    # Assessment rules
    min_assessors: int = 3                  # Contributions needed before finalize
    max_assessors: int = 20                 # Hard cap on contributions per record
    assessment_threshold: int = 70          # Mean score needed to be verified
    standard_deviation_threshold: int = 15  # Deviation below this is agreement
    max_score: int = 100
    
    # Reputation
    reputation_reward: int = 2
    reputation_penalty: int = 5
    
    # Input limits
    identity_max_length: int = 64
    name_max_length: int = 64
    description_max_length: int = 512
    category_max_length: int = 64
    
    # Automatic finalization
    auto_finalize_enabled: bool = False
    finalize_interval_minutes: int = 10
    
    # API Security
    api_key: Optional[str] = None  # Optional API key for the finalization trigger
    allowed_origins: str = "http://localhost:8000,http://localhost:3000"
    
    # Logging
    log_level: str = "INFO"
    
    class Config:
        env_file = ".env"
        env_prefix = "PV_"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@dataclass(frozen=True)
class AssessmentRules:
    """Fixed thresholds the engine enforces, frozen at construction."""
    min_assessors: int = 3
    max_assessors: int = 20
    assessment_threshold: int = 70
    standard_deviation_threshold: int = 15
    max_score: int = 100
    reputation_reward: int = 2
    reputation_penalty: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> "AssessmentRules":
        return cls(
            min_assessors=settings.min_assessors,
            max_assessors=settings.max_assessors,
            assessment_threshold=settings.assessment_threshold,
            standard_deviation_threshold=settings.standard_deviation_threshold,
            max_score=settings.max_score,
            reputation_reward=settings.reputation_reward,
            reputation_penalty=settings.reputation_penalty,
        )


def get_rules() -> AssessmentRules:
    """Rules built from the cached settings."""
    return AssessmentRules.from_settings(get_settings())
