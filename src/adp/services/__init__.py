"""External integrations for adp.

- adb: device listing and boot readiness
- process: holder identity and liveness
"""

from .adb import Adb, AdbError, parse_devices
from .process import current_holder, is_holder_alive

__all__ = [
    "Adb",
    "AdbError",
    "current_holder",
    "is_holder_alive",
    "parse_devices",
]
