"""leadfusion configuration settings."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from leadfusion.config.reliability import SourceReliabilityTable


class FusionSettings(BaseModel):
    """Fusion engine tuning: source trust and contact corroboration."""

    reliability: SourceReliabilityTable = Field(default_factory=SourceReliabilityTable)
    authoritative_source_key: str = "attom-api"
    authoritative_confidence: float = Field(default=0.95, ge=0.0, le=1.0)
    contact_default_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    contact_corroboration_boost: float = Field(default=0.15, ge=0.0, le=1.0)
    contact_confidence_cap: float = Field(default=0.95, gt=0.0)

    model_config = {"frozen": True}

    @field_validator("contact_confidence_cap")
    @classmethod
    def _validate_cap(cls, value: float) -> float:
        if value >= 1.0:
            raise ValueError("contact_confidence_cap must stay below 1.0")
        return value


class StreamSettings(BaseModel):
    """Chunking for the streaming processor."""

    chunk_size: int = Field(
        default_factory=lambda: int(os.getenv("LEADFUSION_CHUNK_SIZE", "100")),
        validate_default=True,
    )

    @field_validator("chunk_size")
    @classmethod
    def _validate_chunk_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("LEADFUSION_CHUNK_SIZE must be >= 1")
        return value


class StoreSettings(BaseModel):
    """Lead store location."""

    data_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("LEADFUSION_DATA_DIR", "./data"))
    )


class LeadFusionConfig(BaseModel):
    """Root configuration for a fusion run."""

    fusion: FusionSettings = Field(default_factory=FusionSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    log_level: str = Field(
        default_factory=lambda: os.getenv("LEADFUSION_LOG_LEVEL", "INFO"),
        validate_default=True,
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper() or "INFO"
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LEADFUSION_LOG_LEVEL must be a logging level name, got {value!r}")
        return level

    def configure_logging(self) -> logging.Logger:
        """Apply ``log_level`` to the package logger and return it."""
        package_logger = logging.getLogger("leadfusion")
        package_logger.setLevel(self.log_level)
        return package_logger
