"""Ownership and permission normalization."""

import logging
import os
import shutil
from pathlib import Path

from .exceptions import InstallError

logger = logging.getLogger(__name__)

GROUP_WRITABLE = 0o775


def normalize_permissions(
    path: Path,
    user: str | None = None,
    group: str | None = None,
    mode: int | None = GROUP_WRITABLE,
) -> None:
    """
    Recursively set ownership and mode on a tree (chown -R / chmod -R).

    Args:
        path: Root of the tree
        user: Owner name (None leaves ownership unchanged)
        group: Group name (None leaves the group unchanged)
        mode: Mode applied to every file and directory (None leaves modes unchanged)

    Raises:
        InstallError: If ownership or mode cannot be changed
    """
    if not path.exists():
        return

    logger.debug(f"Normalizing permissions of {path} (owner={user}:{group}, mode={mode and oct(mode)})")
    try:
        _apply(path, user, group, mode)
        for dirpath, dirnames, filenames in os.walk(path):
            for name in dirnames + filenames:
                item = Path(dirpath) / name
                if item.is_symlink():
                    continue
                _apply(item, user, group, mode)
    except (OSError, LookupError) as e:
        raise InstallError(
            f"Failed to set ownership/permissions on {path}: {e}",
            context={"path": str(path), "user": user, "group": group},
        ) from e


def _apply(item: Path, user: str | None, group: str | None, mode: int | None) -> None:
    if user is not None or group is not None:
        shutil.chown(item, user=user, group=group)
    if mode is not None:
        item.chmod(mode)
