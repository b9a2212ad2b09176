"""
Working clones: one-off transactions against a mirrored repository.

A WorkingClone is a fresh local clone of the mirror, used for a single
transaction (commit then push, move a tag then push) or a short run of
read-only queries, then thrown away.

WorkingClone has no locking. Each transaction gets its own instance and its
own directory; calling methods on one instance from several threads at once
is a usage error.

Nothing here is atomic across the remote. In commit_and_push the branch and
the notes ref are separate pushes, and a failed push leaves the local commit
(and note) in place. move_tag_and_push is last-writer-wins: concurrent
callers moving the same tag overwrite each other. Serializing transactions,
if wanted, is up to the caller.
"""

import logging
import shutil
from pathlib import Path
from types import TracebackType
from typing import Any, Optional

from gitxn.errors import GitError, NoChangesError, NotesRefNotFoundError, PushError, ReadOnlyError
from gitxn.scm import git
from gitxn.scm.protocol import (
    CloneConfig,
    Commit,
    CommitAction,
    MirrorSource,
    Remote,
    TagAction,
    resolve_signing_key,
)

logger = logging.getLogger(__name__)

ALL_TAGS_REFSPEC = "+refs/tags/*:refs/tags/*"


def clone(
    mirror: MirrorSource, config: CloneConfig, timeout: Optional[float] = None
) -> "WorkingClone":
    """
    Acquire a working clone of the mirror.

    On return the clone has the configured branch checked out, the committer
    identity set, every tag force-synchronized from the mirror, and the notes
    ref fetched. If any step fails the directory is removed and the error is
    raised unchanged.

    Args:
        mirror: Mirror to clone from
        config: Per-transaction settings
        timeout: Seconds before any single git command is killed

    Returns:
        WorkingClone owning a fresh directory; call clean() when done

    Raises:
        ReadOnlyError: If the mirror is read-only
        GitError: If any git step fails
    """
    if mirror.read_only:
        raise ReadOnlyError()

    upstream = mirror.origin()
    repo_dir = mirror.working_clone(config.branch, timeout=timeout)

    try:
        git.configure_identity(repo_dir, config.user_name, config.user_email, timeout=timeout)

        # Needed for pushing as well as fetching, so resolve it once
        notes_ref = git.resolve_notes_ref(repo_dir, config.notes_ref, timeout=timeout)

        with mirror.lock.read_locked():
            # Mimic `git fetch --tags --force` without touching head refs.
            # Tags must be fetched before anything else, or an 'existing
            # tag clobber' error can come back.
            git.fetch(repo_dir, str(mirror.dir), ALL_TAGS_REFSPEC, timeout=timeout)
            git.fetch(repo_dir, str(mirror.dir), f"+{notes_ref}:{notes_ref}", timeout=timeout)

        if config.git_secret:
            git.secret_unseal(repo_dir, timeout=timeout)
    except BaseException:
        logger.debug(f"Acquisition failed, removing {repo_dir}")
        shutil.rmtree(repo_dir, ignore_errors=True)
        raise

    logger.info(f"Acquired working clone of {upstream.url}@{config.branch} at {repo_dir}")
    return WorkingClone(repo_dir, config, upstream, notes_ref, timeout=timeout)


class WorkingClone:
    """Local working clone of the upstream repo, for one transaction."""

    def __init__(
        self,
        dir: Path,
        config: CloneConfig,
        upstream: Remote,
        notes_ref: str,
        timeout: Optional[float] = None,
    ) -> None:
        self.dir = dir
        self.config = config
        self.upstream = upstream
        self.notes_ref = notes_ref
        self.timeout = timeout

    def __enter__(self) -> "WorkingClone":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.clean()

    def clean(self) -> None:
        """Remove the clone directory. Safe to call more than once."""
        if self.dir.exists():
            logger.debug(f"Removing working clone {self.dir}")
            shutil.rmtree(self.dir)

    def absolute_paths(self) -> list[Path]:
        """
        Configured paths, rooted at the clone.

        Always returns at least one path: the clone root itself when no
        paths are configured.
        """
        if not self.config.paths:
            return [self.dir]
        return [self.dir / p for p in self.config.paths]

    def commit_and_push(
        self,
        action: CommitAction,
        note: Any = None,
        add_untracked: bool = False,
    ) -> None:
        """
        Commit changes in this clone, attach note, and push both upstream.

        Args:
            action: Message, author and optional signing key
            note: JSON-serializable payload to attach to the new commit
            add_untracked: Stage everything under the clone root first

        Raises:
            NoChangesError: If there is nothing to commit
            GitError: If the commit or note fails (a commit already made stays)
            PushError: If the push fails (the local commit and note stay)
        """
        if add_untracked:
            git.add(self.dir, ".", timeout=self.timeout)

        if not git.has_changes(self.dir, self.config.paths, add_untracked, timeout=self.timeout):
            raise NoChangesError()

        action = CommitAction(
            message=action.message + self.config.skip_message,
            author=action.author if self.config.set_author else "",
            signing_key=resolve_signing_key(action.signing_key, self.config.signing_key),
        )
        git.commit(self.dir, action, timeout=self.timeout)

        if note is not None:
            rev = self.head_revision()
            git.add_note(self.dir, rev, self.notes_ref, note, timeout=self.timeout)

        refs = [self.config.branch]
        # A repo that has never had notes has no notes ref to push
        if git.ref_exists(self.dir, self.notes_ref, timeout=self.timeout):
            refs.append(self.notes_ref)

        try:
            git.push(self.dir, self.upstream.url, refs, timeout=self.timeout)
        except GitError as e:
            raise PushError(self.upstream.url, e) from e

        logger.info(f"Pushed {', '.join(refs)} to {self.upstream.url}")

    def get_note(self, rev: str) -> Any:
        """
        Get the note attached to rev.

        Returns:
            The note payload, or None if rev has no note

        Raises:
            NotesRefNotFoundError: If there are no notes at all
        """
        if not git.ref_exists(self.dir, self.notes_ref, timeout=self.timeout):
            raise NotesRefNotFoundError(self.notes_ref)
        _, note = git.get_note(self.dir, self.notes_ref, rev, timeout=self.timeout)
        return note

    def head_revision(self) -> str:
        return git.ref_revision(self.dir, "HEAD", timeout=self.timeout)

    def move_tag_and_push(self, action: TagAction) -> None:
        """
        Point a tag at a revision and force-push it.

        Whatever upstream had for the tag is overwritten.

        Raises:
            GitError: If the tag can't be made locally
            PushError: If the push fails
        """
        action = TagAction(
            tag=action.tag,
            revision=action.revision,
            message=action.message,
            signing_key=resolve_signing_key(action.signing_key, self.config.signing_key),
        )
        git.move_tag(self.dir, action, timeout=self.timeout)
        try:
            git.push_tag_force(self.dir, self.upstream.url, action.tag, timeout=self.timeout)
        except GitError as e:
            raise PushError(self.upstream.url, e) from e

        logger.info(f"Moved tag {action.tag} to {action.revision} on {self.upstream.url}")

    def changed_files(self, ref: str) -> list[Path]:
        """Files under the configured paths that differ from ref, as absolute paths."""
        files = git.changed(self.dir, ref, self.config.paths, timeout=self.timeout)
        return [self.dir / f for f in files]

    def note_rev_list(self) -> set[str]:
        return git.note_rev_list(self.dir, self.notes_ref, timeout=self.timeout)

    def commits(self, ref_range: str = "HEAD") -> list[Commit]:
        """Commits in ref_range touching the configured paths, newest first."""
        return git.log(self.dir, ref_range, self.config.paths, timeout=self.timeout)

    def checkout(self, rev: str) -> None:
        git.checkout(self.dir, rev, timeout=self.timeout)

    def add(self, path: str) -> None:
        git.add(self.dir, path, timeout=self.timeout)
