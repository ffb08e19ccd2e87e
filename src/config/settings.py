"""
Centralized settings management using pydantic-settings.

All environment variables and tunable ranking values are defined here.
Use get_settings() to access the singleton settings instance.
"""

from functools import lru_cache
from pathlib import Path
from typing import Dict

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Optional environment variables:
        - SUPABASE_URL / SUPABASE_SERVICE_KEY: remote preference store.
          When empty, callers fall back to the in-memory store.
        - ENVIRONMENT: Environment name (development, staging, production)
        - LOG_LEVEL / JSON_LOGS: logging output
        - EXPLORATION_RATE, CONTEXT_MIN_KEEP, FEEDBACK_MIN_KEEP,
          PREF_ALPHA .. PREF_EPSILON: ranking knobs
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode (weather explain logging)")
    log_level: str = Field(default="INFO", description="Minimum log level")
    json_logs: bool = Field(default=False, description="Emit JSON logs instead of console output")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Supabase (preference store)
    # ==========================================================================
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_key: str = Field(default="", description="Supabase service role key")

    @property
    def has_remote_store(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)

    # ==========================================================================
    # Filtering
    # ==========================================================================
    context_min_keep: int = Field(
        default=6,
        description="Minimum items a contextual allowlist must keep before it is adopted"
    )
    feedback_min_keep: int = Field(
        default=6,
        description="Minimum items the strong feedback pass must keep before softening"
    )

    @field_validator("context_min_keep", "feedback_min_keep")
    @classmethod
    def validate_min_keep(cls, v: int) -> int:
        if v < 0:
            raise ValueError("min_keep must be >= 0")
        return v

    # ==========================================================================
    # Personalization & exploration
    # ==========================================================================
    exploration_rate: float = Field(
        default=0.1,
        description="Probability of swapping one item of the chosen outfit"
    )
    exploration_top_n: int = Field(
        default=10,
        description="How many top rescored outfits feed the exploration item pool"
    )
    pref_alpha: float = Field(default=0.2, description="Weight of personal feature affinity")
    pref_beta: float = Field(default=0.3, description="Weight of personal item bias")
    pref_gamma: float = Field(default=0.05, description="Weight of the novelty flag")
    pref_delta: float = Field(default=0.1, description="Weight of global item quality")
    pref_epsilon: float = Field(default=0.05, description="Weight of global feature quality")

    @field_validator("exploration_rate", mode="before")
    @classmethod
    def clamp_exploration_rate(cls, v):
        v = float(v)
        return max(0.0, min(1.0, v))

    @property
    def personalization_weights(self) -> Dict[str, float]:
        return {
            "alpha": self.pref_alpha,
            "beta": self.pref_beta,
            "gamma": self.pref_gamma,
            "delta": self.pref_delta,
            "epsilon": self.pref_epsilon,
        }

    # ==========================================================================
    # Final ranking
    # ==========================================================================
    weather_score_weight: float = Field(
        default=0.05,
        description="Multiplier applied to an outfit's mean item weather score in the final score"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.
    """
    env_file = Path(__file__).parent.parent.parent / ".env"
    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.
    """
    test_defaults = {
        "environment": "testing",
        "debug": True,
    }
    test_defaults.update(overrides)

    return Settings(**test_defaults)
