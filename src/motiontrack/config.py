"""
Motion Tracking Configuration

All calibration constants of the tracking engine in one place.
Defaults are the calibrated values; any value can be overridden
from the environment (or a .env file) for field tuning:

    MOTIONTRACK_REGION_SIZE=80
    MOTIONTRACK_SAMPLE_STRIDE=2
"""

import os
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


logger = logging.getLogger("TrackingConfig")


def _load_env() -> Optional[str]:
    """Load environment variables from the first .env file found."""
    possible_paths = [
        Path(__file__).resolve().parents[2] / ".env",  # src/motiontrack/../../.env
        Path.cwd() / ".env",
        Path.home() / ".env",
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path, override=False)
            return str(env_path)

    load_dotenv()
    return None


@dataclass(frozen=True)
class TrackingConfig:
    """
    Tuning constants for template capture, search and the confidence policy.

    Attributes:
        region_size: Side of the square template captured around the anchor
        search_radius: Half-width of the search window around the last position
        sample_stride: Grid step of the search in both axes
        normalization: Score that maps to confidence 0 (calibration, not a unit)
        movement_threshold: Per-axis displacement that counts as movement
        accept_confidence: Above this a moved match is accepted
        uncertain_confidence: Below this the status is "uncertain"
        lost_frame_limit: More consecutive low-confidence ticks than this is "lost"
    """
    region_size: int = 60
    search_radius: int = 40
    sample_stride: int = 4
    normalization: float = 1_000_000.0
    movement_threshold: float = 2.0
    accept_confidence: float = 0.3
    uncertain_confidence: float = 0.5
    lost_frame_limit: int = 30

    def __post_init__(self):
        self.validate()

    def validate(self):
        if self.region_size <= 0:
            raise ValueError(f"region_size must be positive, got {self.region_size}")
        if self.search_radius < 0:
            raise ValueError(f"search_radius must be >= 0, got {self.search_radius}")
        if self.sample_stride <= 0:
            raise ValueError(f"sample_stride must be positive, got {self.sample_stride}")
        if self.normalization <= 0:
            raise ValueError(f"normalization must be positive, got {self.normalization}")
        if self.movement_threshold < 0:
            raise ValueError(f"movement_threshold must be >= 0, got {self.movement_threshold}")
        if self.lost_frame_limit < 0:
            raise ValueError(f"lost_frame_limit must be >= 0, got {self.lost_frame_limit}")
        for name in ("accept_confidence", "uncertain_confidence"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")

    def with_overrides(self, **overrides) -> "TrackingConfig":
        """Return a copy with some fields replaced."""
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, prefix: str = "MOTIONTRACK_") -> "TrackingConfig":
        """
        Build a config from environment variables.

        Each field is looked up as PREFIX + FIELD_NAME in upper case.
        Missing variables keep their default.
        """
        env_file = _load_env()
        if env_file:
            logger.debug(f"Loaded environment from {env_file}")

        overrides = {}
        for f in fields(cls):
            var = f"{prefix}{f.name.upper()}"
            raw = os.environ.get(var)
            if raw is None or raw.strip() == "":
                continue
            caster = int if f.type in (int, "int") else float
            try:
                overrides[f.name] = caster(raw.strip())
            except ValueError:
                raise ValueError(f"Invalid value for {var}: {raw!r}") from None

        if overrides:
            logger.info(f"Config overrides from environment: {overrides}")
        return cls(**overrides)
