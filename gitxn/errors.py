"""gitxn exception hierarchy with exit codes."""

# Exit code constants (simple 0-5 range)
EXIT_SUCCESS = 0  # Operation succeeded
EXIT_ERROR = 1  # Generic error / failure
EXIT_NOT_READY = 2  # Timed out / cancelled
EXIT_BLOCKED = 3  # Nothing to do
EXIT_PUSH = 4  # Local state changed, push failed
EXIT_USAGE = 5  # Invalid usage / arguments


class GitxnError(Exception):
    """Base exception for all gitxn errors."""

    def __init__(self, message: str, exit_code: int = EXIT_ERROR):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


class GitError(GitxnError):
    """A git command exited non-zero."""

    def __init__(self, message: str, cmd: list[str] | None = None, stderr: str = ""):
        super().__init__(message, exit_code=EXIT_ERROR)
        self.cmd = cmd or []
        self.stderr = stderr


class GitTimeoutError(GitError):
    """
    A git command was killed because it ran past its timeout.

    This is the cancellation kind: the in-flight operation was aborted,
    not completed.
    """

    def __init__(self, message: str, cmd: list[str] | None = None, timeout: float | None = None):
        super().__init__(message, cmd=cmd)
        self.exit_code = EXIT_NOT_READY
        self.timeout = timeout


class NoChangesError(GitxnError):
    """Nothing to commit; callers treat this as "nothing to do"."""

    exit_code = EXIT_BLOCKED

    def __init__(self, message: str = "No changes made in repo"):
        super().__init__(message, exit_code=self.exit_code)


class PushError(GitxnError):
    """
    Pushing to the upstream remote failed.

    The local commit (and note, if any) is not rolled back.
    """

    exit_code = EXIT_PUSH

    def __init__(self, url: str, cause: Exception):
        super().__init__(f"Failed to push to {url}: {cause}", exit_code=self.exit_code)
        self.url = url
        self.cause = cause


class ReadOnlyError(GitxnError):
    """Refusing to make a working clone of a read-only repo."""

    exit_code = EXIT_USAGE

    def __init__(self, message: str = "Cannot make a working clone of a read-only git repo"):
        super().__init__(message, exit_code=self.exit_code)


class NotesRefNotFoundError(GitxnError):
    """The notes ref itself does not exist, so no note lookup is possible."""

    exit_code = EXIT_ERROR

    def __init__(self, notes_ref: str):
        super().__init__(f"Notes ref not found: {notes_ref}", exit_code=self.exit_code)
        self.notes_ref = notes_ref


class ConfigError(GitxnError):
    """Configuration errors (invalid values, missing settings)."""

    exit_code = EXIT_USAGE

    def __init__(self, message: str = "Configuration error"):
        super().__init__(message, exit_code=self.exit_code)
