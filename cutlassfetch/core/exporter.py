"""Interface exporter: publishes the resolved paths to downstream build steps.

Consumers look for the CUTLASS location under different names, so the same
resolution is emitted on every channel under every alias:

1. Directive lines on stdout, ``<prefix><alias>=<value>`` (``cargo:`` by
   default), picked up by the build system's key/value propagation.
2. ``KEY=VALUE`` lines appended to an env file (``CUTLASS_EXPORT_ENV_FILE``),
   for CI runners and wrapper scripts.
3. The current process environment, for compilation steps run in-process.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import MutableMapping
from pathlib import Path
from typing import TextIO

from pydantic import BaseModel, ConfigDict

from cutlassfetch.config import WATCHED_ENV_VARS, Settings
from cutlassfetch.errors import StorageError
from cutlassfetch.models.artifacts import ResolvedArtifact

logger = logging.getLogger(__name__)

ROOT_ALIASES: tuple[str, ...] = ("root", "ROOT", "CUTLASS_ROOT")
INCLUDE_ALIASES: tuple[str, ...] = ("include", "INCLUDE_DIR", "CUTLASS_INCLUDE_DIR")
VERSION_ALIASES: tuple[str, ...] = ("VERSION",)

ENV_ROOT_NAMES: tuple[str, ...] = ("CUTLASS_ROOT", "DEP_CUTLASS_ROOT")
ENV_INCLUDE_NAMES: tuple[str, ...] = (
    "CUTLASS_INCLUDE_DIR",
    "DEP_CUTLASS_INCLUDE",
    "DEP_CUTLASS_INCLUDE_DIR",
)
ENV_VERSION_NAMES: tuple[str, ...] = ("DEP_CUTLASS_VERSION",)


class ExportRecord(BaseModel):
    """Everything one export emitted."""

    model_config = ConfigDict(frozen=True)

    directives: list[str]
    environment: dict[str, str]
    env_file: Path | None = None


class InterfaceExporter:
    """Emits a ResolvedArtifact on every supported channel.

    Parameters
    ----------
    directive_prefix:
        Prefix of each directive line, e.g. ``"cargo:"``.
    env_file:
        File to append ``KEY=VALUE`` lines to, or None.
    stream:
        Where directive lines go.  Defaults to ``sys.stdout``.
    environ:
        Process environment to update.  Defaults to ``os.environ``.
    """

    def __init__(
        self,
        directive_prefix: str = "cargo:",
        env_file: Path | None = None,
        *,
        stream: TextIO | None = None,
        environ: MutableMapping[str, str] | None = None,
    ) -> None:
        self._prefix = directive_prefix
        self._env_file = env_file
        self._stream = stream
        self._environ = environ if environ is not None else os.environ

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: object) -> InterfaceExporter:
        return cls(settings.directive_prefix, settings.export_env_file, **kwargs)

    def directives(self, artifact: ResolvedArtifact) -> list[str]:
        """Directive lines for *artifact*, without writing them anywhere."""
        root = str(artifact.root_dir)
        include = str(artifact.include_dir)
        lines = [f"{self._prefix}rerun-if-env-changed={var}" for var in WATCHED_ENV_VARS]
        lines += [f"{self._prefix}{alias}={root}" for alias in ROOT_ALIASES]
        lines += [f"{self._prefix}{alias}={include}" for alias in INCLUDE_ALIASES]
        lines += [f"{self._prefix}{alias}=v{artifact.version}" for alias in VERSION_ALIASES]
        return lines

    @staticmethod
    def environment(artifact: ResolvedArtifact) -> dict[str, str]:
        """Environment variables for *artifact*."""
        env = {name: str(artifact.root_dir) for name in ENV_ROOT_NAMES}
        env.update({name: str(artifact.include_dir) for name in ENV_INCLUDE_NAMES})
        env.update({name: f"v{artifact.version}" for name in ENV_VERSION_NAMES})
        return env

    def export(self, artifact: ResolvedArtifact) -> ExportRecord:
        """Write *artifact* to stdout directives, the env file and the environment."""
        lines = self.directives(artifact)
        env = self.environment(artifact)

        stream = self._stream or sys.stdout
        for line in lines:
            stream.write(line + "\n")
        stream.flush()

        if self._env_file is not None:
            self._append_env_file(env)

        self._environ.update(env)
        logger.debug("Exported %d directives and %d variables", len(lines), len(env))
        return ExportRecord(directives=lines, environment=env, env_file=self._env_file)

    def _append_env_file(self, env: dict[str, str]) -> None:
        path = Path(self._env_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as fh:
                for name, value in env.items():
                    fh.write(f"{name}={value}\n")
        except OSError as exc:
            raise StorageError(f"Cannot write export env file {path}: {exc}") from exc
