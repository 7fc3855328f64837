"""Environment settings for progol-opt."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from progol_opt.runtime_config import RuntimeConfig


class Settings(BaseSettings):
    """Process-level overrides layered on top of the TOML runtime config."""

    model_config = SettingsConfigDict(
        env_prefix="PROGOL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    seed: int | None = None
    iterations: int | None = Field(default=None, ge=0)
    target_size: int | None = Field(default=None, gt=0)
    output_dir: str = ""
    log_level: str = ""

    def apply(self, runtime: RuntimeConfig) -> RuntimeConfig:
        """Return runtime config with any env-provided values taking precedence."""
        return runtime.with_overrides(
            seed=self.seed,
            iterations=self.iterations,
            target_size=self.target_size,
            output_dir=Path(self.output_dir).expanduser().resolve() if self.output_dir else None,
            log_level=self.log_level.strip().upper() or None,
        )
