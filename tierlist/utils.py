"""
Shared utilities for the Tier List scoring system.

This module provides common functions used across multiple modules
to avoid code duplication.
"""

import logging
import re
import shutil
import tempfile
from pathlib import Path

from tierlist.config import IGN_MAX_LENGTH, IGN_PATTERN

# --- Shared Regex Patterns for Batch Parsing ---
# Lines starting with '#' are operator comments
COMMENT_RE = re.compile(r"^\s*#")

# Tabular header columns: Crystal_Tier, crystal tier, Crystal-Points, ...
MODE_COLUMN_RE = re.compile(r"^(.+?)[\s_-]+(tier|points)$", re.IGNORECASE)


def strip_markdown(text: str) -> str:
    """Remove **bold**, `backticks`, and leading/trailing spaces."""
    return re.sub(r"[*`]", "", text).strip()


def is_valid_ign(ign: str) -> bool:
    """Check an in-game name against the allowed length and character set."""
    return bool(ign) and len(ign) <= IGN_MAX_LENGTH and IGN_PATTERN.fullmatch(ign) is not None


# --- Logging Setup ---
def setup_logging(name: str | None = None, level: int = logging.INFO) -> logging.Logger:
    """
    Configure and return a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__ from the calling module)
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


# --- File Operations ---
def atomic_write_csv(df, path: Path, **kwargs) -> None:
    """
    Write a DataFrame to CSV atomically using a temporary file.

    This prevents data corruption if the write is interrupted.

    Args:
        df: pandas DataFrame to write
        path: Destination path for the CSV file
        **kwargs: Additional arguments to pass to df.to_csv()
    """
    logger = setup_logging(__name__)

    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode='w',
            delete=False,
            suffix='.csv',
            dir=path.parent  # Same filesystem for atomic move
        ) as tmp:
            tmp_path = Path(tmp.name)
        df.to_csv(tmp_path, **kwargs)

        shutil.move(str(tmp_path), str(path))
        logger.debug(f"Atomically wrote {len(df)} rows to {path}")

    except Exception:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise


# --- Validation ---
def validate_input_size(text: str, max_size: int) -> None:
    """
    Validate that input text does not exceed maximum size.

    Args:
        text: Input text to validate
        max_size: Maximum allowed size in bytes

    Raises:
        ValueError: If input exceeds max_size
    """
    size = len(text.encode("utf-8"))
    if size > max_size:
        raise ValueError(
            f"Input too large: {size:,} bytes. "
            f"Maximum allowed: {max_size:,} bytes"
        )


__all__ = [
    # Logging
    'setup_logging',
    # File operations
    'atomic_write_csv',
    # Validation
    'validate_input_size',
    'is_valid_ign',
    # Batch parsing
    'COMMENT_RE',
    'MODE_COLUMN_RE',
    'strip_markdown',
]
