"""Small helpers shared by the library and the CLI host."""

import logging
import sys
from importlib.metadata import PackageNotFoundError, version


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def get_version() -> str:
    """Return the installed package version."""
    try:
        return version("settingsrepo")
    except PackageNotFoundError:
        return "0.0.0+unknown"
