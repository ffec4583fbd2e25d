"""adp errors."""

import signal


class AdpError(Exception):
    """Base exception for adp errors."""


class ConfigError(AdpError):
    """Raised when the config file cannot be read or validated."""


class EnumerationError(AdpError):
    """Raised when the connected devices cannot be listed."""


class LockStoreError(AdpError):
    """Raised on I/O failure while touching a device lock record."""


class StaleLockReclaimRace(AdpError):
    """Raised when a stale lock changed hands before it could be reclaimed."""


class DeviceNotReadyError(AdpError):
    """Raised when an acquired device never finishes booting."""


class ChildSpawnError(AdpError):
    """Raised when the wrapped command cannot be started."""

    def __init__(self, command: str, cause: OSError) -> None:
        super().__init__(f"Failed to start {command}: {cause.strerror or cause}")
        self.command = command
        self.cause = cause


class TerminationRequested(AdpError):
    """Raised when adp itself receives a termination signal."""

    def __init__(self, signum: int) -> None:
        super().__init__(f"Terminated by {signal.Signals(signum).name}")
        self.signum = signum
