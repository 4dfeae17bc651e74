"""Working-directory context: git root discovery and project lookup."""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from .db import TrackerDatabase
from .errors import NotFoundError
from .models import Project

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def normalize_path(path: PathLike) -> str:
    """Absolute path with symlinks resolved where possible."""
    absolute = Path(path).expanduser().absolute()
    try:
        return str(absolute.resolve(strict=True))
    except OSError:
        return str(absolute)


def find_git_root(start: Optional[PathLike] = None) -> Optional[str]:
    """Walk up from ``start`` (default: cwd) to the directory holding ``.git``.

    Returns the normalized root, or None outside a repository.
    """
    current = Path(start if start is not None else os.getcwd()).absolute()
    for candidate in (current, *current.parents):
        if (candidate / ".git").exists():
            return normalize_path(candidate)
    return None


def project_for_directory(db: TrackerDatabase, path: PathLike) -> Optional[Project]:
    """The project associated with the git checkout containing ``path``."""
    root = find_git_root(path)
    if root is None:
        return None
    try:
        return db.get_project_by_path(root)
    except NotFoundError:
        logger.debug("No project registered for %s", root)
        return None
