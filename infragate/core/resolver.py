"""Tag/Version Resolver.

Reads the repository's tag history once per run, finds the latest release
tag, and derives the version string used to tag the runner image.  Reading
history is its only side effect.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from infragate.invokers.exec import CommandRunner, run_command
from infragate.models.refs import CommitRef, NoTagsFound, Tag, TagSet

logger = logging.getLogger(__name__)

_FOR_EACH_REF_FORMAT = "%(refname:short)%09%(objectname)%09%(*objectname)"
_DOCKER_TAG_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


class TagSource(Protocol):
    """Anything that can produce the full tag history."""

    def fetch_tags(self) -> TagSet: ...


class StaticTagSource:
    """A fixed tag history, for callers that already know it."""

    def __init__(self, tags: list[Tag] | TagSet | None = None) -> None:
        if isinstance(tags, TagSet):
            self._tags = tags
        else:
            self._tags = TagSet(tags=tuple(tags or ()))

    def fetch_tags(self) -> TagSet:
        return self._tags


class GitTagSource:
    """Tag history read from a git checkout.

    CI clones are often shallow and tag-less, so tags are fetched first
    unless *fetch* is False.  Annotated tags are peeled to their commit.
    """

    def __init__(
        self,
        repo_root: Path,
        *,
        fetch: bool = True,
        remote: str = "origin",
        runner: CommandRunner = run_command,
    ) -> None:
        self._repo_root = Path(repo_root)
        self._fetch = fetch
        self._remote = remote
        self._runner = runner

    def _git(self, *args: str):
        return self._runner(["git", *args], cwd=self._repo_root)

    def fetch_tags(self) -> TagSet:
        if self._fetch:
            self._git("fetch", "--tags", "--force", "--quiet", self._remote)
        result = self._git(
            "for-each-ref", f"--format={_FOR_EACH_REF_FORMAT}", "refs/tags"
        )
        tags = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            name, object_sha, peeled_sha = (line.split("\t") + ["", ""])[:3]
            tags.append(Tag(name=name, commit=CommitRef(sha=peeled_sha or object_sha)))
        logger.debug("Read %d tags from %s.", len(tags), self._repo_root)
        return TagSet(tags=tuple(tags))

    def head_commit(self) -> CommitRef:
        return CommitRef(sha=self._git("rev-parse", "HEAD").stdout.strip())


class Resolution(BaseModel):
    """What the resolver learned about one commit."""

    model_config = ConfigDict(frozen=True)

    commit: CommitRef
    latest_tag: Tag | None = None
    version: str
    tags_on_commit: tuple[str, ...] = ()

    @property
    def is_latest_tag_commit(self) -> bool:
        return self.latest_tag is not None and self.latest_tag.commit.matches(self.commit)


def derive_version(commit: CommitRef, tags: TagSet) -> str:
    """Derive the image tag for *commit*.

    - the latest tag's version when *commit* is exactly that tag
    - ``<latest>-<short sha>`` when tags exist but the commit is not it
    - ``0.0.0-<short sha>`` when the repository has no tags
    """
    try:
        latest = tags.latest()
    except NoTagsFound:
        return f"0.0.0-{commit.short}"
    version = latest.version
    if not latest.commit.matches(commit):
        version = f"{version}-{commit.short}"
    return _DOCKER_TAG_UNSAFE.sub("-", version)


class TagResolver:
    """Resolves commits against the tag history of one source."""

    def __init__(self, source: TagSource) -> None:
        self._source = source

    def latest(self, tags: TagSet | None = None) -> Tag:
        """Return the latest tag of *tags*, fetching history when not given.

        Raises ``NoTagsFound`` when there are none.
        """
        return (tags if tags is not None else self._source.fetch_tags()).latest()

    def resolve(self, commit: CommitRef) -> Resolution:
        """Fetch history once and describe *commit* against it.

        An empty history is reported as ``latest_tag=None``, not an error.
        """
        tags = self._source.fetch_tags()
        try:
            latest: Tag | None = self.latest(tags)
        except NoTagsFound:
            logger.info("No tags found; %s cannot be redundant.", commit.short)
            latest = None
        return Resolution(
            commit=commit,
            latest_tag=latest,
            version=derive_version(commit, tags),
            tags_on_commit=tuple(tag.name for tag in tags.for_commit(commit)),
        )
