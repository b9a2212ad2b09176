"""Subprocess execution utilities."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Optional

from gitxn.errors import GitError, GitTimeoutError

logger = logging.getLogger(__name__)

# Never block on a credential prompt; fail the command instead. Messages stay
# untranslated because callers match on stderr text.
GIT_ENV = {"GIT_TERMINAL_PROMPT": "0", "LC_ALL": "C", "LANGUAGE": "C"}


def run_command(
    cmd: list[str],
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """
    Run a subprocess command, capturing output.

    Args:
        cmd: Command and arguments as list (safe, no shell injection)
        cwd: Working directory (optional)
        timeout: Seconds before the process is killed (None waits forever)
        check: Raise exception on non-zero exit

    Returns:
        CompletedProcess with results

    Raises:
        GitTimeoutError: If the command runs past its timeout
        GitError: If command fails and check=True
    """
    logger.debug(f"Running: {' '.join(cmd)}")

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=False,
            cwd=cwd,
            timeout=timeout,
            env={**os.environ, **GIT_ENV},
        )
    except subprocess.TimeoutExpired as e:
        error_msg = f"Command timed out after {timeout}s: {' '.join(cmd)}"
        logger.error(error_msg)
        raise GitTimeoutError(error_msg, cmd=cmd, timeout=timeout) from e

    if check and result.returncode != 0:
        error_msg = f"Command failed: {' '.join(cmd)}"
        if result.stderr:
            error_msg += f"\n{result.stderr.strip()}"
        logger.error(error_msg)
        raise GitError(error_msg, cmd=cmd, stderr=result.stderr)

    logger.debug(f"Exit code: {result.returncode}")
    return result


def run_command_output_cwd(
    cmd: list[str],
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> str:
    """
    Run command in specific directory and return stdout.

    Args:
        cmd: Command and arguments as list
        cwd: Working directory (optional)
        timeout: Seconds before the process is killed

    Returns:
        stdout as string (stripped)

    Raises:
        GitError: If command fails
    """
    result = run_command(cmd, cwd=cwd, timeout=timeout)
    return result.stdout.strip()
