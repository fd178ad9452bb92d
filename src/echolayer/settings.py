"""Application settings using pydantic-settings."""

import logging
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from echolayer.core.ledger import RewardMultipliers
from echolayer.propagation.tracker import TrackerConfig
from echolayer.scoring.thresholds import WEIGHT_SUM_TOLERANCE, ScoringWeights

_SETTINGS_LOGGER = logging.getLogger("echolayer.settings")

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseSettings):
    """Application settings. Fixed once constructed."""

    # Application
    app_name: str = "EchoLayer"
    app_env: str = "local"
    log_level: str = "INFO"

    # Echo Index weights
    odf_weight: float = Field(default=0.30, ge=0, le=1)
    awr_weight: float = Field(default=0.25, ge=0, le=1)
    tpm_weight: float = Field(default=0.25, ge=0, le=1)
    qf_weight: float = Field(default=0.20, ge=0, le=1)

    # Propagation tracking
    decay_factor: float = Field(default=0.9, gt=0, le=1)
    resonance_threshold: float = Field(default=0.3, ge=0)
    max_loop_age_hours: float = Field(default=48.0, gt=0)
    loop_strength_floor: float = Field(default=0.1, ge=0, le=1)

    # Rewards
    daily_reward_pool: float = Field(default=10_000.0, ge=0)
    base_rate: float = Field(default=1.0, ge=0)
    quality_multiplier: float = Field(default=1.5, ge=1)
    propagation_multiplier: float = Field(default=2.0, ge=1)
    default_user_influence: float = Field(default=0.5, ge=0, le=1)
    settlement_prefix: str = "tx_"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> str:
        """Accept any case; fall back to INFO for unknown level names."""
        level = str(v or "INFO").strip().upper()
        if level not in _LOG_LEVELS:
            _SETTINGS_LOGGER.warning("Unknown log_level %r, using INFO", v)
            return "INFO"
        return level

    @model_validator(mode="after")
    def validate_weight_sum(self) -> "Settings":
        """Factor weights must sum to 1.0."""
        total = self.odf_weight + self.awr_weight + self.tpm_weight + self.qf_weight
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"factor weights must sum to 1.0, got {total:.4f}")
        return self

    def scoring_weights(self) -> ScoringWeights:
        return ScoringWeights(
            originality=self.odf_weight,
            audience=self.awr_weight,
            temporal=self.tpm_weight,
            quality=self.qf_weight,
        )

    def tracker_config(self) -> TrackerConfig:
        return TrackerConfig(
            decay_factor=self.decay_factor,
            resonance_threshold=self.resonance_threshold,
            max_loop_age_hours=self.max_loop_age_hours,
            strength_floor=self.loop_strength_floor,
        )

    def reward_multipliers(self) -> RewardMultipliers:
        return RewardMultipliers(
            base_rate=self.base_rate,
            quality_multiplier=self.quality_multiplier,
            propagation_multiplier=self.propagation_multiplier,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get settings instance (cached)."""
    return Settings()
