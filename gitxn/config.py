"""Configuration loader."""

import configparser
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from gitxn.errors import ConfigError
from gitxn.scm.protocol import CloneConfig

DEFAULT_BRANCH = "main"
DEFAULT_NOTES_REF = "gitxn"
DEFAULT_USER_NAME = "gitxn"
DEFAULT_USER_EMAIL = "gitxn@localhost"
DEFAULT_SKIP_MESSAGE = "\n\n[ci skip]"
DEFAULT_GIT_TIMEOUT = 60.0
DEFAULT_CONFIG_PATH = Path("~/.config/gitxn/config")

logger = logging.getLogger(__name__)

__all__ = ["CloneConfig", "Settings", "get_settings"]


@dataclass
class Settings:
    """gitxn settings."""

    url: str = ""
    mirror_dir: Optional[Path] = None
    branch: str = DEFAULT_BRANCH
    paths: list[str] = field(default_factory=list)
    notes_ref: str = DEFAULT_NOTES_REF
    user_name: str = DEFAULT_USER_NAME
    user_email: str = DEFAULT_USER_EMAIL
    signing_key: Optional[str] = None
    set_author: bool = False
    skip_message: str = DEFAULT_SKIP_MESSAGE
    git_secret: bool = False
    read_only: bool = False
    git_timeout: float = DEFAULT_GIT_TIMEOUT

    def clone_config(self) -> CloneConfig:
        """Build the per-transaction config for a working clone."""
        return CloneConfig(
            branch=self.branch,
            paths=tuple(self.paths),
            notes_ref=self.notes_ref,
            user_name=self.user_name,
            user_email=self.user_email,
            signing_key=self.signing_key,
            set_author=self.set_author,
            skip_message=self.skip_message,
            git_secret=self.git_secret,
        )

    def require_remote(self) -> tuple[str, Path]:
        """
        Return the upstream URL and mirror directory.

        Raises:
            ConfigError: If either is not configured
        """
        if not self.url:
            raise ConfigError("No upstream URL configured (set GITXN_URL)")
        if self.mirror_dir is None:
            raise ConfigError("No mirror directory configured (set GITXN_MIRROR_DIR)")
        return self.url, self.mirror_dir


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


def _parse_paths(value: str) -> list[str]:
    """
    Parse comma-separated paths.

    Args:
        value: Comma-separated path string (e.g., "manifests/,charts/")

    Returns:
        List of paths (trimmed, empties dropped)
    """
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def _parse_config_file(config_path: Path) -> dict[str, str]:
    """
    Parse INI-style config file.

    Only the [gitxn] section and DEFAULT are read.

    Returns:
        Dict of config values (upper-cased keys)
    """
    if not config_path.exists():
        return {}

    parser = configparser.ConfigParser(interpolation=None)
    try:
        parser.read(config_path)
    except configparser.Error as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e

    config = {key.upper(): value for key, value in parser["DEFAULT"].items()}
    if parser.has_section("gitxn"):
        for key, value in parser["gitxn"].items():
            config[key.upper()] = value

    return config


def get_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Get current settings.

    Resolves from:
    1. Environment variables (GITXN_*)
    2. Config file (GITXN_CONFIG, or ~/.config/gitxn/config)
    3. Defaults

    Returns:
        Settings object
    """
    if config_path is None:
        config_path = Path(os.environ.get("GITXN_CONFIG", DEFAULT_CONFIG_PATH)).expanduser()

    file_config = _parse_config_file(config_path)

    def lookup(key: str) -> Optional[str]:
        return os.environ.get(f"GITXN_{key}") or file_config.get(key)

    settings = Settings()

    settings.url = lookup("URL") or ""

    mirror_dir = lookup("MIRROR_DIR")
    if mirror_dir:
        settings.mirror_dir = Path(mirror_dir).expanduser()

    settings.branch = lookup("BRANCH") or DEFAULT_BRANCH
    settings.paths = _parse_paths(lookup("PATHS") or "")
    settings.notes_ref = lookup("NOTES_REF") or DEFAULT_NOTES_REF
    settings.user_name = lookup("USER_NAME") or DEFAULT_USER_NAME
    settings.user_email = lookup("USER_EMAIL") or DEFAULT_USER_EMAIL
    settings.signing_key = lookup("SIGNING_KEY") or None

    # Empty string is a legitimate value here, so only None means unset
    skip_message = os.environ.get("GITXN_SKIP_MESSAGE", file_config.get("SKIP_MESSAGE"))
    if skip_message is not None:
        settings.skip_message = skip_message.replace("\\n", "\n")

    for key in ("SET_AUTHOR", "GIT_SECRET", "READ_ONLY"):
        value = lookup(key)
        if value:
            setattr(settings, key.lower(), _parse_bool(value))

    git_timeout_str = lookup("GIT_TIMEOUT")
    if git_timeout_str:
        try:
            git_timeout = float(git_timeout_str)
            if git_timeout <= 0:
                logger.warning(
                    f"GITXN_GIT_TIMEOUT must be >0, using default: {DEFAULT_GIT_TIMEOUT}"
                )
            else:
                settings.git_timeout = git_timeout
        except ValueError:
            logger.warning(f"Invalid GITXN_GIT_TIMEOUT value, using default: {DEFAULT_GIT_TIMEOUT}")

    logger.debug(f"Upstream: {settings.url}")
    logger.debug(f"Mirror dir: {settings.mirror_dir}")
    logger.debug(f"Branch: {settings.branch}")
    logger.debug(f"Paths: {settings.paths}")
    logger.debug(f"Notes ref: {settings.notes_ref}")
    logger.debug(f"Git timeout: {settings.git_timeout}")

    return settings
