"""Filesystem helpers for atomically replaced artifacts.

Writers go through a temp file in the destination directory followed by
``os.replace`` so concurrent readers observe either the previous file or the
complete new one, never a partial write. Files are owner-only (0o600) inside
owner-only directories (0o700).
"""

import contextlib
import os
import tempfile
from pathlib import Path

import structlog

logger = structlog.get_logger()

PRIVATE_DIR_MODE = 0o700

PRIVATE_FILE_MODE = 0o600


def ensure_private_dir(directory: Path) -> None:
    """Create directory (and parents) lazily with owner-only permissions."""
    directory.mkdir(mode=PRIVATE_DIR_MODE, parents=True, exist_ok=True)
    directory.chmod(PRIVATE_DIR_MODE)


def atomic_write_bytes(target: Path, content: bytes, *, prefix: str = ".tmp_") -> None:
    """Write content to target via temp-file-then-rename.

    The temp file lives in target's directory so the final rename stays on one
    filesystem. The data is fsynced before the rename. On any failure the temp
    file is removed and the previous target (if any) is left untouched.
    """
    fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), suffix=".tmp", prefix=prefix)
    fd_owned = True
    try:
        with os.fdopen(fd, "wb") as f:
            fd_owned = False  # os.fdopen took ownership; it will close fd
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, PRIVATE_FILE_MODE)  # noqa: PTH101
        Path(tmp_path).replace(target)
    except BaseException:
        if fd_owned:
            with contextlib.suppress(OSError):
                os.close(fd)
        with contextlib.suppress(OSError):
            Path(tmp_path).unlink()
        raise


def remove_file(target: Path) -> bool:
    """Delete target. Return False when it was already gone."""
    try:
        target.unlink()
    except FileNotFoundError:
        return False
    return True


def remove_stale_temp_files(directory: Path, *, prefix: str, older_than: float, now: float) -> int:
    """Delete leftover temp files from writers that died mid-write."""
    removed = 0
    for path in directory.glob(f"{prefix}*.tmp"):
        try:
            if now - path.stat().st_mtime > older_than:
                path.unlink()
                removed += 1
        except FileNotFoundError:
            continue
    if removed:
        logger.info("removed stale temp files", directory=str(directory), count=removed)
    return removed
