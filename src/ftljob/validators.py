import logging
import os
import plistlib
import zipfile

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def validate_ios_app(app_path: str) -> None:
    """Check that a local XCTest zip holds exactly one top-level, parseable .xctestrun file."""
    path = os.path.expanduser(app_path)
    if not os.path.exists(path):
        raise ConfigurationError(f"App file not found at path '{path}'")
    if not zipfile.is_zipfile(path):
        raise ConfigurationError(f"App file '{path}' is not a zip archive")

    with zipfile.ZipFile(path) as archive:
        xctestruns = [n for n in archive.namelist() if "/" not in n and n.endswith(".xctestrun")]
        if len(xctestruns) != 1:
            raise ConfigurationError(
                f"App bundle must contain exactly one .xctestrun file at its root, found {len(xctestruns)}"
            )
        try:
            plistlib.loads(archive.read(xctestruns[0]))
        except (plistlib.InvalidFileException, ValueError) as e:
            raise ConfigurationError(f"Could not parse {xctestruns[0]}: {e}")

    logger.info(f"Validated iOS app bundle {path}")
