"""Configuration for keg.

All tunable constants live here, documented, instead of being scattered
through the codebase. Values that may be overridden at runtime are read
from environment variables.
"""

import logging
import os


class ConfigurationError(Exception):
    """Raised when an environment override is invalid."""

    pass


# =============================================================================
# Index Artifacts
# =============================================================================

# Artifact names passed to Repository.get_index / write_index.
NODES_INDEX = "nodes.tsv"
TAGS_INDEX = "tags"
LINKS_INDEX = "links"
BACKLINKS_INDEX = "backlinks"
CHANGES_INDEX = "changes.md"

# Order in which Dex loads and reports artifacts.
CORE_INDEXES = (NODES_INDEX, TAGS_INDEX, LINKS_INDEX, BACKLINKS_INDEX, CHANGES_INDEX)


# =============================================================================
# Node Content
# =============================================================================

# File name handed to the content parser; selects markdown detection.
CONTENT_FILENAME = "README.md"


# =============================================================================
# Locking
# =============================================================================

# Interval between lock acquisition attempts while waiting on a held node lock.
# Waiters are also woken on release, so this only bounds cancellation latency.
LOCK_RETRY_INTERVAL = 0.1

# Default time to wait for a node lock before failing with LOCK_TIMEOUT.
# None would wait forever; a finite default keeps a stuck holder visible.
DEFAULT_LOCK_TIMEOUT = 30.0


def get_lock_timeout() -> float | None:
    """Get the node lock timeout in seconds.

    Discovery order:
    1. KEG_LOCK_TIMEOUT environment variable ("none" or "0" waits forever)
    2. DEFAULT_LOCK_TIMEOUT

    Raises:
        ConfigurationError: If KEG_LOCK_TIMEOUT is not a number.
    """
    raw = os.environ.get("KEG_LOCK_TIMEOUT")
    if raw is None or not raw.strip():
        return DEFAULT_LOCK_TIMEOUT

    value = raw.strip().lower()
    if value == "none":
        return None
    try:
        timeout = float(value)
    except ValueError:
        raise ConfigurationError(f"KEG_LOCK_TIMEOUT must be a number of seconds, got {raw!r}")
    if timeout < 0:
        raise ConfigurationError(f"KEG_LOCK_TIMEOUT must not be negative, got {raw!r}")
    return timeout or None


# =============================================================================
# Index Writes
# =============================================================================

# Upper bound on worker threads used by Dex.write; one per core artifact.
INDEX_WRITE_WORKERS = len(CORE_INDEXES)


# =============================================================================
# Logging
# =============================================================================

# Level used when neither the caller nor KEG_LOG_LEVEL picks one.
DEFAULT_LOG_LEVEL = "INFO"


def get_log_level(override: str | int | None = None) -> int:
    """Get the keg log level as a logging constant.

    Discovery order:
    1. ``override`` (a level name or number)
    2. KEG_LOG_LEVEL environment variable
    3. DEFAULT_LOG_LEVEL

    Unknown level names fall back to DEFAULT_LOG_LEVEL.
    """
    if isinstance(override, int):
        return override
    raw = override or os.environ.get("KEG_LOG_LEVEL") or DEFAULT_LOG_LEVEL
    level = logging.getLevelName(raw.strip().upper())
    if not isinstance(level, int):
        return logging.getLevelName(DEFAULT_LOG_LEVEL)
    return level
