"""Pydantic models for engine configuration."""

from pydantic import BaseModel, Field


class RetryConfig(BaseModel):
    """Bounded exponential backoff for transient provider errors."""
    max_attempts: int = Field(default=5, ge=1, description="Attempts per action, first try included")
    base_delay: float = Field(default=1.0, ge=0, description="Initial sleep in seconds, doubled per retry")
    max_delay: float = Field(default=30.0, ge=0, description="Upper bound for a single sleep")
    jitter: float = Field(default=0.25, ge=0, le=1, description="Fraction of random noise added to each sleep")


class ExecutorConfig(BaseModel):
    """Worker pool settings."""
    parallelism: int = Field(default=4, ge=1, description="Maximum concurrent provider calls")
    retry: RetryConfig = Field(default_factory=RetryConfig)


class StateConfig(BaseModel):
    """State store settings."""
    path: str = Field(default=".tierplan/state.json", description="Path of the JSON state file")


class LoggingConfig(BaseModel):
    """Logging settings."""
    level: str = Field(default="WARNING", description="Root tierplan log level")


class EngineConfig(BaseModel):
    """Complete engine configuration."""
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
