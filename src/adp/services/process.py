"""Process identity and liveness checks for lock holders."""

import os

import psutil

from ..constants import START_TIME_TOLERANCE
from ..models import Holder


def current_holder() -> Holder:
    """Get the holder identity of the current process."""
    pid = os.getpid()
    return Holder(pid=pid, create_time=psutil.Process(pid).create_time())


def is_holder_alive(holder: Holder) -> bool:
    """Check if the process recorded as a lock holder is still running.

    A PID that now belongs to a process started at a different time is a
    reused PID, and the original holder is gone.

    Args:
        holder: Holder identity read from a lock record

    Returns:
        True if the holder process is alive, False otherwise
    """
    try:
        proc = psutil.Process(holder.pid)
        if proc.status() == psutil.STATUS_ZOMBIE:
            return False
        return abs(proc.create_time() - holder.create_time) <= START_TIME_TOLERANCE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # Exists but belongs to another user; it cannot be shown dead
        return True
