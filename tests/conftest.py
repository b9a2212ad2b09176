"""Test fixtures and utilities."""

import subprocess
from collections.abc import Generator
from pathlib import Path

import click.testing
import pytest

from gitxn.mirror import Mirror
from gitxn.scm.protocol import CloneConfig, Remote
from gitxn.working import WorkingClone

BRANCH = "main"
NOTES_REF = "gitxn"


def git(cwd: Path, *args: str) -> str:
    """Run git in cwd and return stripped stdout."""
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def commit_file(repo: Path, relpath: str, content: str, message: str = "Update") -> str:
    """Write a file, commit it, and return the new revision."""
    target = repo / relpath
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    git(repo, "add", relpath)
    git(repo, "commit", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def upstream(tmp_path: Path) -> Path:
    """Bare repository standing in for the remote."""
    upstream_dir = tmp_path / "upstream.git"
    subprocess.run(
        ["git", "init", "--bare", str(upstream_dir)], check=True, capture_output=True
    )
    git(upstream_dir, "symbolic-ref", "HEAD", f"refs/heads/{BRANCH}")
    return upstream_dir


@pytest.fixture
def seed(tmp_path: Path, upstream: Path) -> Path:
    """
    Non-bare clone of upstream, playing "another actor".

    Has an initial commit on main with manifests/ and docs/ directories.
    """
    seed_dir = tmp_path / "seed"
    seed_dir.mkdir()
    git(seed_dir, "init")
    git(seed_dir, "symbolic-ref", "HEAD", f"refs/heads/{BRANCH}")
    git(seed_dir, "config", "user.email", "seed@example.com")
    git(seed_dir, "config", "user.name", "Seed User")

    (seed_dir / "manifests").mkdir()
    (seed_dir / "manifests" / "app.yaml").write_text("replicas: 1\n")
    (seed_dir / "docs").mkdir()
    (seed_dir / "docs" / "README.md").write_text("# Docs\n")
    git(seed_dir, "add", ".")
    git(seed_dir, "commit", "-m", "Initial")

    git(seed_dir, "remote", "add", "origin", str(upstream))
    git(seed_dir, "push", "origin", BRANCH)
    return seed_dir


@pytest.fixture
def mirror(tmp_path: Path, upstream: Path, seed: Path) -> Mirror:
    """Mirror of upstream, already refreshed."""
    mirror = Mirror(
        Remote(url=str(upstream)),
        tmp_path / "mirror.git",
        timeout=30,
        working_root=tmp_path / "working",
    )
    mirror.refresh()
    return mirror


@pytest.fixture
def clone_config() -> CloneConfig:
    """Default per-transaction config."""
    return CloneConfig(
        branch=BRANCH,
        notes_ref=NOTES_REF,
        user_name="Gitxn Bot",
        user_email="bot@example.com",
        skip_message="\n\n[ci skip]",
    )


@pytest.fixture
def checkout(mirror: Mirror, clone_config: CloneConfig) -> Generator[WorkingClone, None, None]:
    """Working clone of the mirror, removed afterwards."""
    working = mirror.clone(clone_config)
    yield working
    working.clean()


@pytest.fixture
def runner() -> click.testing.CliRunner:
    """Click CliRunner for testing CLI commands."""
    return click.testing.CliRunner()
