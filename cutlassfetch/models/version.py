"""Pinned artifact identity: version string -> tag, URLs and cache key."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

from cutlassfetch.errors import ConfigError

_SEMVER_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


def parse_semver(raw: str) -> str:
    """Validate *raw* as a semantic version and return it without a ``v`` prefix.

    Raises ``ConfigError`` if the string is not ``MAJOR.MINOR.PATCH`` with
    optional pre-release and build suffixes.
    """
    candidate = (raw or "").strip()
    if not _SEMVER_RE.match(candidate):
        raise ConfigError(f"Not a semantic version: {raw!r}")
    return candidate[1:] if candidate.startswith("v") else candidate


def cache_key_for(version: str) -> str:
    """Derive the cache directory name for a normalized version string."""
    return "cutlass-" + version.lower().replace("+", "_")


class VersionSpec(BaseModel):
    """The exact upstream release a build is pinned to.

    Immutable; one instance exists per resolution.
    """

    model_config = ConfigDict(frozen=True)

    version: str
    tag: str
    archive_url: str
    git_url: str

    @classmethod
    def from_version(
        cls,
        raw_version: str,
        *,
        archive_url_template: str,
        git_url: str,
    ) -> VersionSpec:
        """Build a spec by substituting the tag into the URL templates."""
        version = parse_semver(raw_version)
        tag = f"v{version}"
        try:
            archive_url = archive_url_template.format(tag=tag, version=version)
        except (KeyError, IndexError, ValueError) as exc:
            raise ConfigError(
                f"Bad archive URL template {archive_url_template!r}: {exc}"
            ) from exc
        return cls(version=version, tag=tag, archive_url=archive_url, git_url=git_url)

    @property
    def cache_key(self) -> str:
        """Deterministic cache directory name for this spec."""
        return cache_key_for(self.version)
