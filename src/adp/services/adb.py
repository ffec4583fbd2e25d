"""adb integration for adp.

Lists connected devices and checks whether a device has finished booting.
"""

import logging
import subprocess
import time
from collections.abc import Callable

from ..constants import ADB_TIMEOUT, BOOT_ATTEMPTS, BOOT_INTERVAL
from ..errors import DeviceNotReadyError, EnumerationError

logger = logging.getLogger(__name__)

DEVICES_HEADER = "List of devices attached"

# Properties that must hold before a device counts as booted
BOOT_PROPS = (
    ("init.svc.bootanim", "stopped"),
    ("sys.boot_completed", "1"),
)


class AdbError(Exception):
    """adb command failed."""


def parse_devices(output: str) -> list[str]:
    """Parse ``adb devices -l`` output into serials.

    Status columns (device, offline, product:..., model:...) are ignored.

    Args:
        output: Raw stdout of ``adb devices -l``

    Returns:
        Serials in the order adb reported them

    Raises:
        EnumerationError: If the output does not look like a device list
    """
    lines = [
        line.strip()
        for line in output.splitlines()
        if line.strip() and not line.lstrip().startswith("*")
    ]
    if not lines or lines[0] != DEVICES_HEADER:
        raise EnumerationError(f"Unexpected adb devices output: {output.strip()[:100]!r}")

    serials = []
    for line in lines[1:]:
        fields = line.split()
        if len(fields) < 2:
            raise EnumerationError(f"Malformed adb devices line: {line!r}")
        serials.append(fields[0])
    return serials


class Adb:
    """Thin wrapper around the adb executable."""

    def __init__(self, path: str = "adb", timeout: int = ADB_TIMEOUT) -> None:
        self.path = path
        self.timeout = timeout

    def run(self, args: list[str]) -> str:
        """Run adb with arguments and return stdout.

        Raises:
            AdbError: If adb is missing, times out or exits non-zero
        """
        cmd = [self.path, *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise AdbError(f"adb not found: {self.path}") from None
        except subprocess.TimeoutExpired:
            raise AdbError(f"{' '.join(cmd)} timed out after {self.timeout} seconds") from None
        except OSError as e:
            raise AdbError(f"Failed to run {self.path}: {e}") from e

        if result.returncode != 0:
            raise AdbError(
                f"{' '.join(cmd)} failed with exit code {result.returncode}: "
                f"{result.stderr.strip()}"
            )
        return result.stdout

    def devices(self) -> list[str]:
        """List serials of connected devices.

        Raises:
            EnumerationError: If adb cannot be run or its output is malformed
        """
        try:
            output = self.run(["devices", "-l"])
        except AdbError as e:
            raise EnumerationError(str(e)) from e
        return parse_devices(output)

    def getprop(self, serial: str, name: str) -> str:
        """Read a system property from a device."""
        return self.run(["-s", serial, "shell", "getprop", name]).strip()

    def wait_for_boot(
        self,
        serial: str,
        attempts: int = BOOT_ATTEMPTS,
        interval: float = BOOT_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Block until a device reports that it has finished booting.

        Args:
            serial: Device to check
            attempts: Reads per property before giving up
            interval: Seconds between reads
            sleep: Sleep function (injectable for tests)

        Raises:
            DeviceNotReadyError: If a property never reaches its expected value
        """
        for prop, expected in BOOT_PROPS:
            value: str | None = None
            for attempt in range(attempts):
                try:
                    value = self.getprop(serial, prop)
                except AdbError as e:
                    logger.debug(f"{serial}: reading {prop} failed: {e}")
                    value = None
                if value == expected:
                    break
                logger.debug(f"{serial}: {prop}={value!r}, waiting for {expected!r}")
                if attempt < attempts - 1:
                    sleep(interval)
            else:
                raise DeviceNotReadyError(
                    f"{serial} did not finish booting: {prop}={value!r}, expected {expected!r}"
                )
        logger.debug(f"{serial}: boot completed")
