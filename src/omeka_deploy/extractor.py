"""Archive extraction.

GitHub and GitLab archives contain one top-level directory named after the
repository and revision (e.g. Omeka-S-module-Common-master). Extraction
renames it to the logical component name so the on-disk name never depends
on the upstream naming convention.
"""

import logging
import shutil
import tempfile
import zipfile
from pathlib import Path

from .exceptions import ExtractionAmbiguousError
from .schema import ExtractedComponent
from .schema import FetchResult

logger = logging.getLogger(__name__)

# Resource-fork folders added by macOS zip tools
_IGNORED_ENTRIES = {"__MACOSX"}


def _top_level_dirs(extract_root: Path) -> list[Path]:
    return sorted(
        item for item in extract_root.iterdir() if item.is_dir() and item.name not in _IGNORED_ENTRIES
    )


def extract_archive(fetch_result: FetchResult, final_name: str) -> ExtractedComponent:
    """
    Unpack an archive and rename its single top-level directory.

    The archive is unpacked into a fresh directory next to it, so everything
    is removed along with the operation's work directory.

    Args:
        fetch_result: Downloaded archive
        final_name: Logical component name for the extracted directory

    Returns:
        ExtractedComponent whose directory is named final_name

    Raises:
        ExtractionAmbiguousError: If the archive is unreadable or has zero or
            several top-level directories (nothing is left at final_name)
    """
    extract_root = Path(tempfile.mkdtemp(prefix="extract-", dir=fetch_result.archive_path.parent))
    logger.info(f"Extracting {fetch_result.component}...")

    try:
        with zipfile.ZipFile(fetch_result.archive_path) as archive:
            archive.extractall(extract_root)
    except (zipfile.BadZipFile, OSError) as e:
        shutil.rmtree(extract_root, ignore_errors=True)
        raise ExtractionAmbiguousError(fetch_result.component) from e

    candidates = _top_level_dirs(extract_root)
    if len(candidates) != 1:
        shutil.rmtree(extract_root, ignore_errors=True)
        raise ExtractionAmbiguousError(fetch_result.component, [c.name for c in candidates])

    extracted = candidates[0]
    target = extract_root / final_name
    if extracted != target:
        if target.exists():
            # A top-level file already carries the component name
            shutil.rmtree(extract_root, ignore_errors=True)
            raise ExtractionAmbiguousError(fetch_result.component, [extracted.name, final_name])
        extracted.rename(target)

    logger.debug(f"Extracted {extracted.name} as {target}")
    return ExtractedComponent(directory=target, final_name=final_name)
