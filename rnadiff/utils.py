"""
Shared utility helpers for RNADiff.

Covers package-wide logging, file-size helpers, and elapsed-time
formatting.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

_logger: Optional[logging.Logger] = None


def get_logger(log_file: Optional[Path] = None) -> logging.Logger:
    """Return (and lazily configure) the package-wide logger.

    The first call decides the console handler. A call that passes a
    *log_file* not yet attached closes any file handler left from an
    earlier run and attaches a new one for *log_file*.
    """
    global _logger
    if _logger is None:
        _logger = logging.getLogger("rnadiff")
        _logger.setLevel(logging.DEBUG)

        # Rich console handler (INFO+)
        rh = RichHandler(console=console, show_path=False, markup=True)
        rh.setLevel(logging.INFO)
        _logger.addHandler(rh)

    if log_file is not None:
        log_file = Path(log_file)
        file_handlers = [
            h for h in _logger.handlers if isinstance(h, logging.FileHandler)
        ]
        attached = {h.baseFilename for h in file_handlers}
        if os.path.abspath(log_file) not in attached:
            for h in file_handlers:
                _logger.removeHandler(h)
                h.close()
            log_file.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(log_file, encoding="utf-8")
            fh.setLevel(logging.DEBUG)
            fmt = logging.Formatter("%(asctime)s  %(levelname)-8s  %(message)s")
            fh.setFormatter(fmt)
            _logger.addHandler(fh)

    return _logger


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


def file_size_human(path: Path) -> str:
    """Return human-readable file size string."""
    size = path.stat().st_size
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} PB"


def fmt_elapsed(seconds: float) -> str:
    """Format seconds into H:MM:SS or M:SS."""
    h, rem = divmod(int(seconds), 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def ensure_parent(path: Path) -> Path:
    """Create parent directories and return *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
