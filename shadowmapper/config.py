"""
Shadow Mapper Configuration

Central settings loaded from environment variables.
"""

import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Thresholds:
    """Tuned constants for extraction and matching.

    Overridable per call so calibration runs can sweep them
    without touching the process-wide defaults.
    """

    # --- Pass 2 ---
    confidence_floor: float = float(
        os.getenv("SHADOWMAPPER_CONFIDENCE_FLOOR", "0.40")
    )
    soft_decay: float = float(os.getenv("SHADOWMAPPER_SOFT_DECAY", "0.85"))

    # --- Segmentation ---
    min_sentence_length: int = int(
        os.getenv("SHADOWMAPPER_MIN_SENTENCE_LENGTH", "15")
    )
    min_alpha_ratio: float = float(
        os.getenv("SHADOWMAPPER_MIN_ALPHA_RATIO", "0.5")
    )

    # --- Pass 1 confidence ---
    base_confidence: float = 0.5
    pattern_bonus: float = 0.1
    max_base_confidence: float = 0.9

    # --- Delta ---
    match_threshold: float = float(
        os.getenv("SHADOWMAPPER_MATCH_THRESHOLD", "0.40")
    )


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    # --- Core Versioning ---
    CORE_VERSION: str = "1.0.0"
    API_VERSION: str = "1"

    # --- Analysis ---
    THRESHOLDS: Thresholds = field(default_factory=Thresholds)
    MAX_TOP_UNINDEXED: int = int(os.getenv("SHADOWMAPPER_MAX_TOP_UNINDEXED", "5"))

    # --- Server ---
    HOST: str = os.getenv("SHADOWMAPPER_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("SHADOWMAPPER_PORT", "8000"))

    # --- CORS ---
    CORS_ORIGINS: str = os.getenv("SHADOWMAPPER_CORS_ORIGINS", "*")

    # --- Logging ---
    LOG_LEVEL: str = os.getenv("SHADOWMAPPER_LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("SHADOWMAPPER_LOG_FORMAT", "json")  # "json" or "text"


settings = Settings()
