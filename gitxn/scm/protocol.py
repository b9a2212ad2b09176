"""Data types shared by the mirror, the working clone and the git layer."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from gitxn.rwlock import ReadWriteLock


@dataclass(frozen=True)
class Remote:
    """Upstream location of the tracked repository."""

    url: str


@dataclass(frozen=True)
class Signature:
    """GPG signature details of a commit."""

    key: str
    status: str


@dataclass(frozen=True)
class Commit:
    """A commit as read back from `git log`."""

    signature: Signature
    revision: str
    message: str


@dataclass(frozen=True)
class CommitAction:
    """Commit parameters."""

    message: str
    author: str = ""
    signing_key: Optional[str] = None


@dataclass(frozen=True)
class TagAction:
    """Tag parameters."""

    tag: str
    revision: str
    message: str
    signing_key: Optional[str] = None


@dataclass(frozen=True)
class CloneConfig:
    """
    What a working clone needs to know to run a transaction.

    Supplied once at acquisition time and never changed afterwards.
    """

    branch: str
    notes_ref: str
    user_name: str
    user_email: str
    paths: tuple[str, ...] = field(default_factory=tuple)
    signing_key: Optional[str] = None
    set_author: bool = False
    skip_message: str = ""
    git_secret: bool = False


def resolve_signing_key(override: Optional[str], default: Optional[str]) -> Optional[str]:
    """Caller-supplied key wins; otherwise fall back to the configured one."""
    return override or default or None


class MirrorSource(Protocol):
    """What a working clone needs from the mirror it is made from."""

    dir: Path
    lock: ReadWriteLock
    read_only: bool

    def origin(self) -> Remote:
        """Upstream remote the mirror tracks."""

    def working_clone(self, branch: str, timeout: Optional[float] = None) -> Path:
        """
        Make a fresh local clone of the mirror, checked out at branch.

        Args:
            branch: Branch to check out
            timeout: Seconds before git is killed

        Returns:
            Path to the new clone directory (owned by the caller)
        """
