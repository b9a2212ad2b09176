"""gitxn CLI entrypoint."""

import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, NoReturn, Optional

import click

from gitxn.config import Settings, get_settings
from gitxn.errors import EXIT_BLOCKED, EXIT_USAGE, GitxnError, NoChangesError
from gitxn.logging import setup_logging
from gitxn.mirror import Mirror
from gitxn.scm.protocol import CommitAction, Remote, TagAction
from gitxn.working import WorkingClone

logger = logging.getLogger(__name__)


class OutsideCloneError(ValueError):
    """A file argument would land outside the working clone."""


def _mirror(settings: Settings) -> Mirror:
    url, mirror_dir = settings.require_remote()
    return Mirror(
        Remote(url=url),
        mirror_dir,
        read_only=settings.read_only,
        timeout=settings.git_timeout,
    )


def _run(settings: Settings, fn: Callable[[WorkingClone], Any]) -> Any:
    """Refresh the mirror, acquire a working clone, run fn in it, clean up."""
    mirror = _mirror(settings)
    mirror.refresh()
    logger.debug(f"Mirror {mirror.dir} refreshed from {mirror.origin().url}")
    with mirror.clone(settings.clone_config()) as checkout:
        return fn(checkout)


def _fail(e: GitxnError) -> NoReturn:
    click.echo(f"Error: {e.message}", err=True)
    sys.exit(e.exit_code)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.version_option(package_name="gitxn")
@click.pass_context
def gitxn(ctx: click.Context, verbose: bool) -> None:
    """gitxn - one-shot transactions against a mirrored git repo."""
    setup_logging(verbose=verbose)
    try:
        ctx.obj = get_settings()
    except GitxnError as e:
        _fail(e)


@gitxn.command()
@click.pass_obj
def refresh(settings: Settings) -> None:
    """Create or update the local mirror."""
    try:
        _mirror(settings).refresh()
    except GitxnError as e:
        _fail(e)


@gitxn.command()
@click.option("-m", "--message", required=True, help="Commit message")
@click.option("--author", default="", help="Commit author (used if set_author is on)")
@click.option("--signing-key", default=None, help="GPG key to sign with")
@click.option("--note", "note_json", default=None, help="JSON note to attach to the commit")
@click.option("--add-untracked", is_flag=True, help="Stage untracked files too")
@click.argument("files", nargs=-1, type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def commit(
    settings: Settings,
    message: str,
    author: str,
    signing_key: Optional[str],
    note_json: Optional[str],
    add_untracked: bool,
    files: tuple[str, ...],
) -> None:
    """
    Copy FILES into a fresh clone, commit and push.

    Each FILE lands at the same relative path inside the clone.

    Exit codes:
      0: Pushed
      3: Nothing to commit
    """
    for name in files:
        if Path(name).is_absolute():
            click.echo(f"Error: {name} must be a relative path", err=True)
            sys.exit(EXIT_USAGE)

    note = None
    if note_json is not None:
        try:
            note = json.loads(note_json)
        except ValueError as e:
            click.echo(f"Error: --note is not valid JSON: {e}", err=True)
            sys.exit(EXIT_USAGE)

    def transaction(checkout: WorkingClone) -> str:
        root = checkout.dir.resolve()
        for name in files:
            target = (root / name).resolve()
            if not target.is_relative_to(root):
                raise OutsideCloneError(name)
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(name, "rb") as src:
                target.write_bytes(src.read())
        checkout.commit_and_push(
            CommitAction(message=message, author=author, signing_key=signing_key),
            note=note,
            add_untracked=add_untracked,
        )
        return checkout.head_revision()

    try:
        rev = _run(settings, transaction)
    except NoChangesError as e:
        click.echo(e.message)
        sys.exit(EXIT_BLOCKED)
    except OutsideCloneError as e:
        click.echo(f"Error: {e} must stay inside the repository", err=True)
        sys.exit(EXIT_USAGE)
    except GitxnError as e:
        _fail(e)

    click.echo(rev)


@gitxn.command()
@click.argument("name")
@click.argument("revision")
@click.option("-m", "--message", required=True, help="Tag message")
@click.option("--signing-key", default=None, help="GPG key to sign with")
@click.pass_obj
def tag(
    settings: Settings, name: str, revision: str, message: str, signing_key: Optional[str]
) -> None:
    """Move tag NAME to REVISION and force-push it."""
    action = TagAction(tag=name, revision=revision, message=message, signing_key=signing_key)
    try:
        _run(settings, lambda checkout: checkout.move_tag_and_push(action))
    except GitxnError as e:
        _fail(e)


@gitxn.command()
@click.pass_obj
def notes(settings: Settings) -> None:
    """List revisions that have a note attached."""
    try:
        revs = _run(settings, lambda checkout: checkout.note_rev_list())
    except GitxnError as e:
        _fail(e)

    for rev in sorted(revs):
        click.echo(rev)


@gitxn.command()
@click.argument("revision")
@click.pass_obj
def note(settings: Settings, revision: str) -> None:
    """
    Print the note on REVISION as JSON.

    Exits 3 if REVISION has no note.
    """
    try:
        payload = _run(settings, lambda checkout: checkout.get_note(revision))
    except GitxnError as e:
        _fail(e)

    if payload is None:
        click.echo(f"No note for {revision}")
        sys.exit(EXIT_BLOCKED)
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


@gitxn.command()
@click.argument("ref")
@click.pass_obj
def changed(settings: Settings, ref: str) -> None:
    """List files under the configured paths that changed since REF."""
    try:
        files = _run(
            settings,
            lambda checkout: [p.relative_to(checkout.dir) for p in checkout.changed_files(ref)],
        )
    except GitxnError as e:
        _fail(e)

    for path in files:
        click.echo(str(path))
