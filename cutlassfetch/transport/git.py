"""Git transport: shallow clone of the release tag.

Used as the fallback when the archive download is unavailable.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from cutlassfetch.errors import NetworkError, NotFoundError
from cutlassfetch.models.artifacts import TransportKind
from cutlassfetch.models.version import VersionSpec
from cutlassfetch.transport.base import private_workdir, promote_tree

logger = logging.getLogger(__name__)

# Substrings of git's stderr that mean the ref or repository does not exist.
NOT_FOUND_PATTERNS: tuple[str, ...] = (
    "not found in upstream",
    "remote branch",
    "repository not found",
    "does not appear to be a git repository",
    "couldn't find remote ref",
)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class GitTransport:
    """Clones ``spec.git_url`` at ``spec.tag`` with depth 1.

    Parameters
    ----------
    git_executable:
        Name or path of the git binary.
    runner:
        Replacement for ``subprocess.run``; tests inject a fake.
    """

    kind = TransportKind.GIT

    def __init__(self, git_executable: str = "git", *, runner: Runner | None = None) -> None:
        self._git = git_executable
        self._runner = runner or subprocess.run

    def fetch(self, spec: VersionSpec, dest: Path, *, timeout: float) -> None:
        """Clone the tagged tree into *dest*, without its ``.git`` directory."""
        with private_workdir(dest, "git") as work:
            clone_dir = work / "clone"
            cmd = [
                self._git,
                "clone",
                "--depth", "1",
                "--single-branch",
                "--branch", spec.tag,
                "--quiet",
                spec.git_url,
                str(clone_dir),
            ]
            logger.info("Cloning %s at %s", spec.git_url, spec.tag)
            self._run(cmd, timeout=timeout, label=spec.tag)

            if not clone_dir.is_dir():
                raise NetworkError(f"git clone of {spec.tag} produced no tree")
            shutil.rmtree(clone_dir / ".git", ignore_errors=True)
            promote_tree(work, dest)
        logger.info("Cloned %s into %s", spec.tag, dest)

    def _run(self, cmd: Sequence[str], *, timeout: float, label: str) -> None:
        kwargs: dict[str, Any] = {
            "capture_output": True,
            "text": True,
            "timeout": timeout,
            "check": False,
            "env": _git_env(),
        }
        try:
            result = self._runner(list(cmd), **kwargs)
        except FileNotFoundError as exc:
            raise NotFoundError(f"git executable not found: {self._git}") from exc
        except subprocess.TimeoutExpired as exc:
            raise NetworkError(f"git clone of {label} timed out after {timeout}s") from exc
        except (subprocess.SubprocessError, OSError) as exc:
            raise NetworkError(f"git clone of {label} failed: {exc}") from exc

        if result.returncode == 0:
            return
        stderr = (result.stderr or "").strip()
        lowered = stderr.lower()
        if any(p in lowered for p in NOT_FOUND_PATTERNS):
            raise NotFoundError(f"git ref {label} not found: {stderr}")
        raise NetworkError(f"git clone of {label} exited {result.returncode}: {stderr}")


def _git_env() -> dict[str, str]:
    """Process environment with interactive credential prompts disabled."""
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env
