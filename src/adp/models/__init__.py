"""Pydantic data models for adp.

- Holder: identity of the process owning a device (PID + start time)
- Lock: the on-disk record that marks a device as checked out
"""

from .lock import Holder, Lock

__all__ = [
    "Holder",
    "Lock",
]
