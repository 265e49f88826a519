"""Build-time configuration, env-driven.

Every knob the pipeline reads from the environment lives here and is read
exactly once, when ``Settings()`` is constructed.  The resulting object is
passed explicitly into the orchestrator; transports and the retry policy
never look at ``os.environ`` themselves.

Examples
--------
Pin a shared cache in CI::

    export CUTLASS_CACHE_DIR=/ci/cache/cutlass
    export CUTLASS_FETCH_RETRIES=5

Build against a local checkout, no network::

    export CUTLASS_DIR=$HOME/src/cutlass
"""

from __future__ import annotations

from pathlib import Path

import platformdirs
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_NAME = "cutlassfetch"

DEFAULT_ARCHIVE_URL_TEMPLATE = (
    "https://github.com/NVIDIA/cutlass/archive/refs/tags/{tag}.tar.gz"
)
DEFAULT_GIT_URL = "https://github.com/NVIDIA/cutlass.git"

# Environment variables whose change should make a build step re-run.
WATCHED_ENV_VARS: tuple[str, ...] = (
    "CUTLASS_DIR",
    "CUTLASS_CACHE_DIR",
    "BUILD_CACHE_ROOT",
    "CUTLASS_VERSION",
    "CUTLASS_DOWNLOAD_TIMEOUT",
    "CUTLASS_FETCH_RETRIES",
)


class Settings(BaseSettings):
    """Configuration for one resolution, read from CUTLASS_* variables.

    A ``.env`` file in the working directory is honoured as well.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CUTLASS_",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Local override (CUTLASS_DIR); bypasses cache and network entirely
    override_dir: Path | None = Field(
        default=None,
        validation_alias="CUTLASS_DIR",
    )

    # Cache root resolution: explicit -> build system shared root -> per-user
    cache_dir: Path | None = None
    build_cache_root: Path | None = Field(
        default=None,
        validation_alias="BUILD_CACHE_ROOT",
    )
    cache_lock: bool = False
    stale_staging_seconds: float = 24 * 60 * 60

    # Version pin (CUTLASS_VERSION); defaults to the package version
    version: str | None = None
    archive_url_template: str = DEFAULT_ARCHIVE_URL_TEMPLATE
    git_url: str = DEFAULT_GIT_URL

    # Network behaviour
    download_timeout: float = Field(default=120.0, gt=0)
    fetch_retries: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)

    # Export channels
    directive_prefix: str = "cargo:"
    export_env_file: Path | None = None

    log_level: str = "INFO"

    @field_validator("override_dir", "cache_dir", "build_cache_root", "export_env_file", mode="before")
    @classmethod
    def _blank_path_is_unset(cls, value: object) -> object:
        # An exported-but-empty variable means "not set", not the cwd.
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def resolve_cache_root(self) -> Path:
        """Return the cache root, honouring the documented precedence."""
        if self.cache_dir is not None:
            return Path(self.cache_dir)
        if self.build_cache_root is not None:
            return Path(self.build_cache_root) / APP_NAME
        return Path(platformdirs.user_cache_dir(APP_NAME))
