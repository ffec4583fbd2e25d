"""Runtime directory utilities."""

import os
from pathlib import Path

LOCKS_DIR = "locks"


def get_runtime_dir(override: Path | None = None) -> Path:
    """Get the directory holding adp's shared state.

    Args:
        override: Directory from config, used as-is if provided

    Returns:
        Path to the adp runtime directory (not created)
    """
    if override is not None:
        return override.expanduser()

    runtime = os.environ.get("XDG_RUNTIME_DIR")
    if runtime:
        return Path(runtime) / "adp"

    cache = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(cache) / "adp"


def get_locks_dir(runtime_dir: Path) -> Path:
    """Get the lock store directory inside the runtime directory."""
    return runtime_dir / LOCKS_DIR
