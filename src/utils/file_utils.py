"""
Filesystem helpers for the local database.
"""

from pathlib import Path


def ensure_directory_exists(path: str | Path) -> Path:
    """Create *path* and any missing parents; return it resolved."""
    p = Path(path).resolve()
    p.mkdir(parents=True, exist_ok=True)
    return p


def ensure_parent_exists(path: str | Path) -> Path:
    """Create the parent directory of a file path; return the file path resolved."""
    p = Path(path).resolve()
    ensure_directory_exists(p.parent)
    return p
