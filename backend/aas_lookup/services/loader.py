"""
Startup loading of asset files.

Expands the configured glob patterns and registers every matching file.
A file that fails to load is logged and skipped so one broken package does
not keep the service from starting.
"""

import glob
import logging
from pathlib import Path
from typing import Iterable

from aas_lookup.exceptions import AssetStoreError
from aas_lookup.services.store import AssetStore

logger = logging.getLogger(__name__)


def expand_patterns(patterns: Iterable[str], require_matches: bool = False) -> list[Path]:
    """
    Expand glob patterns into readable files.

    Raises:
        FileNotFoundError: If ``require_matches`` is set and a pattern
            matches no file
    """
    files: list[Path] = []
    for pattern in patterns:
        matches = sorted(Path(p) for p in glob.glob(pattern, recursive=True))
        matches = [path for path in matches if path.is_file()]
        if not matches and require_matches:
            raise FileNotFoundError(f"File {pattern} does not exist or match any files.")
        files.extend(matches)
    return files


def load_asset_files(
    store: AssetStore,
    patterns: Iterable[str],
    require_matches: bool = False,
) -> list[str]:
    """
    Load all files matching the patterns into the store.

    Returns:
        Ids of all registered shells
    """
    shell_ids: list[str] = []
    for path in expand_patterns(patterns, require_matches):
        logger.info("Loading %s", path.resolve())
        try:
            shell_ids.extend(store.load_file(path))
        except (AssetStoreError, OSError):
            logger.exception("An error occurred when loading the asset file %s", path.resolve())
    return shell_ids
