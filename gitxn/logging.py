"""Logging configuration."""

import logging
import sys

# Parent of every module logger in the package
PACKAGE_LOGGER = "gitxn"


def setup_logging(verbose: bool = False) -> None:
    """
    Send log records to stderr so they never mix with command output.

    Only gitxn's own loggers go to DEBUG when verbose; everything else
    stays at WARNING.
    """
    logging.basicConfig(
        level=logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if verbose else logging.WARNING)
