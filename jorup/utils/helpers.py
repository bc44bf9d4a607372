from datetime import datetime, timezone
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


def utc_now() -> str:
    """
    Returns current UTC timestamp in ISO 8601 format.
    Used for release metadata (installed_at).
    """
    return datetime.now(timezone.utc).isoformat()


def ensure_dir(path: PathLike) -> Path:
    """
    Create-if-absent for a directory tree.
    Safe to call repeatedly; returns the directory as a Path.
    """
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def write_if_absent(path: PathLike, content: Union[str, bytes]) -> bool:
    """
    Write-once helper.
    Returns True when the file was written, False when it already existed
    (existing content is never touched).
    """
    p = Path(path)
    if p.is_file():
        return False
    if isinstance(content, bytes):
        p.write_bytes(content)
    else:
        p.write_text(content, encoding="utf-8")
    return True
