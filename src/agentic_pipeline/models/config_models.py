"""Process-wide pipeline configuration."""

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MAX_RETRIES_LIMIT = 10
ENV_PREFIX = "AGENTIC_PIPELINE_"


class PipelineConfiguration(BaseModel):
    """Switches and limits applied to every task the pipeline runs.

    ``max_retries`` is the per-task budget of correction attempts; each
    step is corrected at most once. ``parallel_execution`` is accepted but
    tasks always run one at a time.
    """

    model_config = ConfigDict(frozen=False, extra="forbid", validate_assignment=True)

    enable_validation: bool = True
    enable_testing: bool = True
    enable_error_correction: bool = True
    max_retries: int = Field(default=3, ge=0, le=MAX_RETRIES_LIMIT)
    timeout_ms: int = Field(default=300_000, gt=0)
    parallel_execution: bool = False
    validation_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    auto_fix_errors: bool = True

    @property
    def correction_enabled(self) -> bool:
        return self.enable_error_correction and self.auto_fix_errors

    def merged(self, partial: dict[str, Any]) -> "PipelineConfiguration":
        """Return a validated copy with ``partial`` applied.

        Raises:
            pydantic.ValidationError: If a key is unknown or a value is out of range.
        """
        return PipelineConfiguration.model_validate({**self.model_dump(), **partial})

    @classmethod
    def from_env(cls) -> "PipelineConfiguration":
        """Load configuration from AGENTIC_PIPELINE_* variables, falling back to defaults."""
        defaults = cls()
        return cls(
            enable_validation=_env_bool("ENABLE_VALIDATION", defaults.enable_validation),
            enable_testing=_env_bool("ENABLE_TESTING", defaults.enable_testing),
            enable_error_correction=_env_bool(
                "ENABLE_ERROR_CORRECTION", defaults.enable_error_correction
            ),
            max_retries=int(os.getenv(f"{ENV_PREFIX}MAX_RETRIES", str(defaults.max_retries))),
            timeout_ms=int(os.getenv(f"{ENV_PREFIX}TIMEOUT_MS", str(defaults.timeout_ms))),
            parallel_execution=_env_bool("PARALLEL_EXECUTION", defaults.parallel_execution),
            validation_threshold=float(
                os.getenv(
                    f"{ENV_PREFIX}VALIDATION_THRESHOLD", str(defaults.validation_threshold)
                )
            ),
            auto_fix_errors=_env_bool("AUTO_FIX_ERRORS", defaults.auto_fix_errors),
        )


def _env_bool(name: str, default: bool) -> bool:
    key = f"{ENV_PREFIX}{name}"
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {key}: {value!r}")
