"""Bare mirror of the upstream repository."""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from gitxn.config import DEFAULT_GIT_TIMEOUT
from gitxn.scm import git
from gitxn.scm.protocol import CloneConfig, Remote
from gitxn.rwlock import ReadWriteLock
from gitxn.working import WorkingClone, clone

logger = logging.getLogger(__name__)


class Mirror:
    """
    Long-lived bare copy of a remote.

    The mirror's directory is shared: working clones read from it while a
    refresh writes to it. `lock` arbitrates, shared for reads and exclusive
    for refreshes. The mirror is owned by the caller and handed explicitly
    to whatever needs it.
    """

    def __init__(
        self,
        origin: Remote,
        dir: Path,
        read_only: bool = False,
        timeout: Optional[float] = DEFAULT_GIT_TIMEOUT,
        working_root: Optional[Path] = None,
    ) -> None:
        """
        Args:
            origin: Upstream remote
            dir: Where the bare mirror lives (created on first refresh)
            read_only: Refuse working clones (no transactions allowed)
            timeout: Default seconds before a git command is killed
            working_root: Parent directory for working clones (system temp dir if None)
        """
        self._origin = origin
        self.dir = dir
        self.read_only = read_only
        self.timeout = timeout
        self.working_root = working_root
        self.lock = ReadWriteLock()

    def origin(self) -> Remote:
        return self._origin

    def exists(self) -> bool:
        """Check whether the mirror has been created."""
        return (self.dir / "HEAD").exists()

    def refresh(self, timeout: Optional[float] = None) -> None:
        """
        Bring the mirror up to date with upstream, creating it if needed.

        Holds the lock exclusively: no working clone reads from the mirror
        while it is being written.
        """
        timeout = timeout if timeout is not None else self.timeout
        with self.lock.write_locked():
            if self.exists():
                logger.debug(f"Updating mirror {self.dir}")
                git.update_mirror(self.dir, timeout=timeout)
            else:
                logger.info(f"Creating mirror of {self._origin.url} at {self.dir}")
                self.dir.parent.mkdir(parents=True, exist_ok=True)
                git.clone_mirror(self._origin.url, self.dir, timeout=timeout)

    def working_clone(self, branch: str, timeout: Optional[float] = None) -> Path:
        """
        Make a fresh clone of the mirror with branch checked out.

        Returns:
            Path to the new directory, which the caller owns

        Raises:
            GitError: If the clone fails (nothing is left on disk)
        """
        timeout = timeout if timeout is not None else self.timeout
        if self.working_root is not None:
            self.working_root.mkdir(parents=True, exist_ok=True)
        working_dir = Path(tempfile.mkdtemp(prefix="gitxn-working-", dir=self.working_root))

        try:
            with self.lock.read_locked():
                git.clone_branch(self.dir, working_dir, branch, timeout=timeout)
        except BaseException:
            shutil.rmtree(working_dir, ignore_errors=True)
            raise

        logger.debug(f"Working clone of {branch} at {working_dir}")
        return working_dir

    def clone(self, config: CloneConfig, timeout: Optional[float] = None) -> WorkingClone:
        """Acquire a working clone for one transaction."""
        return clone(self, config, timeout=timeout if timeout is not None else self.timeout)
