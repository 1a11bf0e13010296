"""Run configuration for collapsing annotation files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from expectation_collapse.errors import CollapseError, Err
from expectation_collapse.registry import DimensionRegistry, default_registry, load_registry

REGISTRY_ENV = "EXPECTATION_COLLAPSE_REGISTRY"
JOBS_ENV = "EXPECTATION_COLLAPSE_JOBS"


class CollapseSettings(BaseModel):
    registry_path: Path | None = None
    # Property keys to minimize; ``None`` means every conditional property.
    properties: tuple[str, ...] | None = None
    # Condition errors abort the whole file when set, otherwise only the key.
    strict: bool = True
    jobs: int = Field(1, ge=1)
    verbosity: int = Field(0, ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, **overrides) -> "CollapseSettings":
        env = os.environ if env is None else env
        values: dict[str, object] = {}
        if env.get(REGISTRY_ENV):
            values["registry_path"] = env[REGISTRY_ENV]
        if env.get(JOBS_ENV):
            values["jobs"] = env[JOBS_ENV]
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as exc:
            raise CollapseError(
                Err.INVALID_CONFIG,
                ctx={"error": "invalid settings", "details": exc.errors(include_url=False)},
                cause=exc,
            )

    def wants(self, key: str) -> bool:
        return self.properties is None or key in self.properties

    def load_registry(self) -> DimensionRegistry:
        if self.registry_path is None:
            return default_registry()
        return load_registry(self.registry_path)


__all__ = ["CollapseSettings", "REGISTRY_ENV", "JOBS_ENV"]
