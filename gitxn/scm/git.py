"""
Low-level git operations.

Each function runs a single git command in a working directory and either
returns its result or raises GitError. None of them retries.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Sequence

from gitxn.errors import GitError
from gitxn.scm.protocol import Commit, CommitAction, Signature, TagAction
from gitxn.scm.tools import run_command, run_command_output_cwd

logger = logging.getLogger(__name__)

NO_NOTE_MARKER = "no note found for object"
MISSING_REMOTE_REF_MARKER = "couldn't find remote ref"


def clone_mirror(upstream_url: str, mirror_dir: Path, timeout: Optional[float] = None) -> None:
    """
    Make a bare mirror of the upstream repo.

    Args:
        upstream_url: URL of the remote
        mirror_dir: Directory to create (must not exist or be empty)
        timeout: Seconds before git is killed
    """
    run_command(["git", "clone", "--mirror", upstream_url, str(mirror_dir)], timeout=timeout)


def update_mirror(mirror_dir: Path, timeout: Optional[float] = None) -> None:
    """Fetch every ref from upstream into the mirror, pruning deleted ones."""
    run_command(["git", "remote", "update", "--prune"], cwd=mirror_dir, timeout=timeout)


def clone_branch(
    source: Path, working_dir: Path, branch: str, timeout: Optional[float] = None
) -> None:
    """Clone source into working_dir with branch checked out."""
    run_command(
        ["git", "clone", "--branch", branch, str(source), str(working_dir)],
        timeout=timeout,
    )


def configure_identity(
    working_dir: Path, user_name: str, user_email: str, timeout: Optional[float] = None
) -> None:
    """Set the committer identity for this clone only."""
    for key, value in (("user.name", user_name), ("user.email", user_email)):
        run_command(["git", "config", key, value], cwd=working_dir, timeout=timeout)


def resolve_notes_ref(working_dir: Path, ref: str, timeout: Optional[float] = None) -> str:
    """
    Expand a notes ref name to its full form.

    Args:
        working_dir: Clone directory
        ref: Short or full notes ref (e.g. "gitxn" or "refs/notes/gitxn")

    Returns:
        Full ref name (e.g. "refs/notes/gitxn")
    """
    return run_command_output_cwd(
        ["git", "notes", "--ref", ref, "get-ref"], cwd=working_dir, timeout=timeout
    )


def fetch(
    working_dir: Path, source: str, refspec: str, timeout: Optional[float] = None
) -> None:
    """
    Fetch refspec from source.

    A ref missing on the source side is not an error: there is simply
    nothing to fetch yet.
    """
    result = run_command(
        ["git", "fetch", "--tags", source, refspec],
        cwd=working_dir,
        timeout=timeout,
        check=False,
    )
    if result.returncode == 0:
        return
    if MISSING_REMOTE_REF_MARKER in result.stderr.lower():
        logger.debug(f"Nothing to fetch for {refspec} from {source}")
        return
    raise GitError(
        f"Failed to fetch {refspec} from {source}: {result.stderr.strip()}",
        cmd=["git", "fetch", "--tags", source, refspec],
        stderr=result.stderr,
    )


def secret_unseal(working_dir: Path, timeout: Optional[float] = None) -> None:
    """Decrypt git-secret managed files in place."""
    run_command(["git", "secret", "reveal", "-f"], cwd=working_dir, timeout=timeout)


def add(working_dir: Path, path: str, timeout: Optional[float] = None) -> None:
    """Stage a path."""
    run_command(["git", "add", "--", path], cwd=working_dir, timeout=timeout)


def has_changes(
    working_dir: Path,
    paths: Sequence[str],
    full_repo: bool,
    timeout: Optional[float] = None,
) -> bool:
    """
    Check for staged or unstaged changes against HEAD.

    Args:
        working_dir: Clone directory
        paths: Paths to restrict the check to (ignored when full_repo)
        full_repo: Check the whole repository

    Returns:
        True if something differs from HEAD
    """
    cmd = ["git", "diff", "--quiet", "HEAD", "--"]
    if not full_repo:
        cmd.extend(paths)

    result = run_command(cmd, cwd=working_dir, timeout=timeout, check=False)
    if result.returncode == 0:
        return False
    if result.returncode == 1:
        return True
    raise GitError(
        f"Failed to check for changes: {result.stderr.strip()}",
        cmd=cmd,
        stderr=result.stderr,
    )


def commit(working_dir: Path, action: CommitAction, timeout: Optional[float] = None) -> None:
    """Commit all tracked modifications."""
    cmd = ["git", "commit", "--no-verify", "-a", "-m", action.message]
    if action.author:
        cmd.append(f"--author={action.author}")
    if action.signing_key:
        cmd.append(f"--gpg-sign={action.signing_key}")
    cmd.append("--")
    run_command(cmd, cwd=working_dir, timeout=timeout)


def ref_revision(working_dir: Path, ref: str, timeout: Optional[float] = None) -> str:
    """Resolve ref to a commit hash."""
    return run_command_output_cwd(
        ["git", "rev-list", "--max-count", "1", ref, "--"], cwd=working_dir, timeout=timeout
    )


def ref_exists(working_dir: Path, ref: str, timeout: Optional[float] = None) -> bool:
    """Check whether ref exists locally."""
    cmd = ["git", "rev-parse", "--verify", "--quiet", ref]
    result = run_command(cmd, cwd=working_dir, timeout=timeout, check=False)
    if result.returncode == 0:
        return True
    if result.returncode == 1:
        return False
    raise GitError(
        f"Failed to look up {ref}: {result.stderr.strip()}", cmd=cmd, stderr=result.stderr
    )


def add_note(
    working_dir: Path, rev: str, notes_ref: str, note: Any, timeout: Optional[float] = None
) -> None:
    """Attach note (serialized as JSON) to rev."""
    run_command(
        ["git", "notes", "--ref", notes_ref, "add", "-m", json.dumps(note), rev],
        cwd=working_dir,
        timeout=timeout,
    )


def get_note(
    working_dir: Path, notes_ref: str, rev: str, timeout: Optional[float] = None
) -> tuple[bool, Any]:
    """
    Read the note attached to rev.

    Returns:
        (True, payload) if there is a note, (False, None) if there isn't
    """
    cmd = ["git", "notes", "--ref", notes_ref, "show", rev]
    result = run_command(cmd, cwd=working_dir, timeout=timeout, check=False)
    if result.returncode != 0:
        if NO_NOTE_MARKER in result.stderr.lower():
            return False, None
        raise GitError(
            f"Failed to read note for {rev}: {result.stderr.strip()}",
            cmd=cmd,
            stderr=result.stderr,
        )
    try:
        return True, json.loads(result.stdout)
    except ValueError as e:
        raise GitError(
            f"Note for {rev} is not valid JSON: {e}", cmd=cmd, stderr=result.stderr
        ) from e


def note_rev_list(working_dir: Path, notes_ref: str, timeout: Optional[float] = None) -> set[str]:
    """Revisions that have a note attached under notes_ref."""
    output = run_command_output_cwd(
        ["git", "notes", "--ref", notes_ref, "list"], cwd=working_dir, timeout=timeout
    )
    revs: set[str] = set()
    for line in output.splitlines():
        # "<note object> <annotated object>"
        parts = line.split()
        if len(parts) == 2:
            revs.add(parts[1])
    return revs


def push(
    working_dir: Path, upstream_url: str, refs: Sequence[str], timeout: Optional[float] = None
) -> None:
    """Push refs to upstream."""
    run_command(["git", "push", upstream_url, *refs], cwd=working_dir, timeout=timeout)


def move_tag(working_dir: Path, action: TagAction, timeout: Optional[float] = None) -> None:
    """Create or move an annotated tag."""
    cmd = ["git", "tag", "--force", "-a", "-m", action.message]
    if action.signing_key:
        cmd.append(f"--local-user={action.signing_key}")
    cmd.extend([action.tag, action.revision])
    run_command(cmd, cwd=working_dir, timeout=timeout)


def push_tag_force(
    working_dir: Path, upstream_url: str, tag: str, timeout: Optional[float] = None
) -> None:
    """Force-push a tag, overwriting whatever upstream has."""
    ref = f"refs/tags/{tag}"
    run_command(
        ["git", "push", "--force", upstream_url, f"+{ref}:{ref}"],
        cwd=working_dir,
        timeout=timeout,
    )


def changed(
    working_dir: Path, ref: str, paths: Sequence[str], timeout: Optional[float] = None
) -> list[str]:
    """
    List files that differ between ref and the working tree.

    Returns:
        Paths relative to the repository root
    """
    output = run_command_output_cwd(
        ["git", "diff", "--name-only", ref, "--", *paths], cwd=working_dir, timeout=timeout
    )
    return [line for line in output.splitlines() if line]


def checkout(working_dir: Path, rev: str, timeout: Optional[float] = None) -> None:
    """Check out rev."""
    run_command(["git", "checkout", rev, "--"], cwd=working_dir, timeout=timeout)


def log(
    working_dir: Path,
    ref_range: str,
    paths: Sequence[str] = (),
    timeout: Optional[float] = None,
) -> list[Commit]:
    """
    List commits in ref_range, newest first.

    Args:
        working_dir: Clone directory
        ref_range: Anything `git log` accepts (e.g. "HEAD", "v1..HEAD")
        paths: Restrict to commits touching these paths

    Returns:
        List of Commit objects
    """
    output = run_command_output_cwd(
        ["git", "log", "--pretty=format:%GK|%G?|%H|%s", ref_range, "--", *paths],
        cwd=working_dir,
        timeout=timeout,
    )

    commits: list[Commit] = []
    for line in output.splitlines():
        parts = line.split("|", 3)
        if len(parts) != 4:
            logger.debug(f"Skipping unparseable log line: {line}")
            continue
        key, status, revision, message = parts
        commits.append(
            Commit(
                signature=Signature(key=key, status=status),
                revision=revision,
                message=message,
            )
        )
    return commits
