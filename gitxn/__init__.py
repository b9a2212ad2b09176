"""gitxn - transactional working clones of a mirrored git repository."""

from gitxn.errors import (
    GitError,
    GitTimeoutError,
    GitxnError,
    NoChangesError,
    NotesRefNotFoundError,
    PushError,
    ReadOnlyError,
)
from gitxn.mirror import Mirror
from gitxn.scm.protocol import CloneConfig, Commit, CommitAction, Remote, TagAction
from gitxn.working import WorkingClone, clone

__all__ = [
    "CloneConfig",
    "Commit",
    "CommitAction",
    "GitError",
    "GitTimeoutError",
    "GitxnError",
    "Mirror",
    "NoChangesError",
    "NotesRefNotFoundError",
    "PushError",
    "ReadOnlyError",
    "Remote",
    "TagAction",
    "WorkingClone",
    "clone",
]
