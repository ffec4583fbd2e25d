"""Core device checkout logic for adp.

- lock_store: per-device lock records shared across processes
- allocator: scan/wait loop that locks exactly one device
- guard: guaranteed release of an acquired lock
- runner: run the wrapped command with the serial exported
- signals: termination signal handling
- session: acquire -> prepare -> run -> release
"""

from .allocator import Allocator
from .guard import ReleaseGuard
from .lock_store import LockStore
from .runner import build_child_env, exit_code_from_returncode, run_command
from .runtime_dir import get_locks_dir, get_runtime_dir
from .session import checkout_and_run
from .signals import deferred_signals, termination_handlers

__all__ = [
    "Allocator",
    "LockStore",
    "ReleaseGuard",
    "build_child_env",
    "checkout_and_run",
    "deferred_signals",
    "exit_code_from_returncode",
    "get_locks_dir",
    "get_runtime_dir",
    "run_command",
    "termination_handlers",
]
