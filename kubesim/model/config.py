"""Engine configuration."""

import json
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from ..utils.logger import get_logger

logger = get_logger(__name__)


class EngineConfig(BaseModel):
    """Timing, topology and defaults of a simulated cluster."""

    reconcile_interval: float = Field(2.0, gt=0)
    promotion_delay: float = Field(1.0, ge=0)
    promotion_jitter: float = Field(0.0, ge=0)
    seed: Optional[int] = None
    grace_period: float = Field(0.5, ge=0)
    node_count: int = Field(3, ge=1)
    node_capacity: int = Field(10, ge=1)
    allow_overcommit: bool = True
    default_image: str = "nginx"
    command_prefix: str = "kubectl"

    @model_validator(mode="after")
    def _promotion_fits_in_tick(self) -> "EngineConfig":
        # A pod created on one tick must be Running before the next tick counts it
        if self.promotion_delay + self.promotion_jitter >= self.reconcile_interval:
            raise ValueError(
                "promotion_delay + promotion_jitter must be shorter than reconcile_interval"
            )
        return self

    @classmethod
    def from_file(cls, config_path: Path) -> "EngineConfig":
        """Load configuration from a YAML or JSON file."""
        config_path = Path(config_path)
        with open(config_path, "r") as f:
            if config_path.suffix in (".yaml", ".yml"):
                raw = yaml.safe_load(f) or {}
            else:
                raw = json.load(f)

        config = cls(**raw)
        logger.info(f"Loaded engine config from {config_path}")
        return config
