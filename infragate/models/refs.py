"""Commit and release-tag reference models.

A ``TagSet`` is populated once per run by fetching every tag reachable in
history and is read-only thereafter.  Ordering follows semantic-version
precedence for tags that parse as ``v?MAJOR.MINOR.PATCH[-pre][+build]`` and
falls back to plain lexicographic order when none do.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

_SHA_RE = re.compile(r"^[0-9a-f]{4,40}$")

_SEMVER_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)


class NoTagsFound(LookupError):
    """Raised when a tag history contains no tags at all."""


def semver_key(name: str) -> tuple[Any, ...] | None:
    """Return a sort key implementing semver precedence, or None.

    Release versions sort above their pre-releases; numeric pre-release
    identifiers sort below alphanumeric ones.  Build metadata is ignored.
    """
    match = _SEMVER_RE.match(name)
    if match is None:
        return None
    pre = match.group("pre")
    if pre is None:
        pre_key: tuple[Any, ...] = (1, ())
    else:
        pre_key = (
            0,
            tuple(
                (0, int(part), "") if part.isdigit() else (1, 0, part)
                for part in pre.split(".")
            ),
        )
    return (
        int(match.group("major")),
        int(match.group("minor")),
        int(match.group("patch")),
        pre_key,
    )


class CommitRef(BaseModel):
    """An immutable commit identifier supplied by the triggering event."""

    model_config = ConfigDict(frozen=True)

    sha: str

    @field_validator("sha")
    @classmethod
    def _normalize(cls, value: str) -> str:
        value = value.strip().lower()
        if not _SHA_RE.match(value):
            raise ValueError(f"Not a commit hash: {value!r}")
        return value

    @property
    def short(self) -> str:
        return self.sha[:8]

    def matches(self, other: CommitRef) -> bool:
        """True when both refs name the same commit.

        Abbreviated hashes match when one is a prefix of the other.
        """
        if len(self.sha) <= len(other.sha):
            return other.sha.startswith(self.sha)
        return self.sha.startswith(other.sha)

    def __str__(self) -> str:
        return self.sha


class Tag(BaseModel):
    """A release tag and the commit it points to."""

    model_config = ConfigDict(frozen=True)

    name: str
    commit: CommitRef

    @property
    def semver(self) -> tuple[Any, ...] | None:
        return semver_key(self.name)

    @property
    def version(self) -> str:
        """The tag name without its ``v`` prefix when it is a semver tag."""
        if self.semver is not None and self.name.startswith("v"):
            return self.name[1:]
        return self.name


class TagSet(BaseModel):
    """Ordered, read-only collection of the release tags in history."""

    model_config = ConfigDict(frozen=True)

    tags: tuple[Tag, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.tags

    def latest(self) -> Tag:
        """Return the semantically latest tag.

        Raises ``NoTagsFound`` for an empty set.
        """
        if not self.tags:
            raise NoTagsFound("Repository has no tags")
        versioned = [tag for tag in self.tags if tag.semver is not None]
        if versioned:
            return max(versioned, key=lambda tag: tag.semver)
        return max(self.tags, key=lambda tag: tag.name)

    def for_commit(self, commit: CommitRef) -> list[Tag]:
        """Return every tag pointing at *commit*."""
        return [tag for tag in self.tags if tag.commit.matches(commit)]
