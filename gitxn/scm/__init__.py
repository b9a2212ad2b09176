"""Git layer: data types, subprocess runner and single-command operations."""

from gitxn.scm.protocol import (
    CloneConfig,
    Commit,
    CommitAction,
    MirrorSource,
    Remote,
    Signature,
    TagAction,
    resolve_signing_key,
)

__all__ = [
    "CloneConfig",
    "Commit",
    "CommitAction",
    "MirrorSource",
    "Remote",
    "Signature",
    "TagAction",
    "resolve_signing_key",
]
