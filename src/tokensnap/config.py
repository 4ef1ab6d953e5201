"""Simulator configuration."""

import os
from typing import Any

from pydantic import BaseModel, Field, model_validator

ENV_PREFIX = "TOKENSNAP_"


class SimulatorConfig(BaseModel):
    """Configuration for the discrete-event simulator."""

    min_delay: int = Field(default=1, ge=1, description="Minimum ticks before delivery")
    max_delay: int = Field(default=5, ge=1, description="Maximum ticks before delivery")
    seed: int | None = Field(default=None, description="Seed for delivery delays")
    max_collect_ticks: int = Field(
        default=10_000, ge=1, description="Tick budget when collecting a snapshot"
    )

    @model_validator(mode="after")
    def _check_delays(self) -> "SimulatorConfig":
        if self.max_delay < self.min_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= min_delay ({self.min_delay})"
            )
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> "SimulatorConfig":
        """Build a config from TOKENSNAP_* environment variables.

        Keyword overrides take precedence over the environment.
        """
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        values.update(overrides)
        return cls.model_validate(values)
