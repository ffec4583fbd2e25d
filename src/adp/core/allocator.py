"""Device allocator.

Scans the connected devices for one that is free (or whose holder died)
and locks it, sleeping with jittered backoff between scans until one
turns up. Waiting holds nothing, so any number of processes can wait at
once. When several devices are free the first in enumeration order wins;
no ordering between waiting processes is guaranteed.
"""

import logging
import random
import time
from collections.abc import Callable

from ..constants import (
    ENUMERATION_RETRIES,
    MAX_POLL_INTERVAL,
    POLL_BACKOFF,
    POLL_INTERVAL,
    POLL_JITTER,
)
from ..errors import EnumerationError, LockStoreError, StaleLockReclaimRace
from ..models import Holder, Lock
from .guard import ReleaseGuard
from .lock_store import LockStore
from .signals import deferred_signals

logger = logging.getLogger(__name__)


class Allocator:
    """Blocking allocator of exactly one device per call to ``acquire``."""

    def __init__(
        self,
        store: LockStore,
        list_devices: Callable[[], list[str]],
        holder: Holder,
        *,
        command: str = "",
        poll_interval: float = POLL_INTERVAL,
        max_interval: float = MAX_POLL_INTERVAL,
        backoff: float = POLL_BACKOFF,
        jitter: float = POLL_JITTER,
        enumeration_retries: int = ENUMERATION_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.list_devices = list_devices
        self.holder = holder
        self.command = command
        self.poll_interval = poll_interval
        self.max_interval = max(max_interval, poll_interval)
        self.backoff = backoff
        self.jitter = jitter
        self.enumeration_retries = enumeration_retries
        self._sleep = sleep

    def _take(self, serial: str, guard: ReleaseGuard | None) -> Lock | None:
        """Try-acquire and arm the guard with termination signals held back."""
        with deferred_signals():
            lock = self.store.try_acquire(serial, self.holder, self.command)
            if lock is not None and guard is not None:
                guard.arm(lock)
            return lock

    def _try_device(self, serial: str, guard: ReleaseGuard | None) -> Lock | None:
        """Try to lock one device, reclaiming it first if its holder is dead."""
        try:
            lock = self._take(serial, guard)
            if lock is None and self.store.is_stale(serial):
                # Signals stay deliverable here; reclaiming takes nothing
                observed = self.store.get_current_lock(serial)
                self.store.reclaim(serial, observed.holder if observed else None)
                lock = self._take(serial, guard)
        except StaleLockReclaimRace as e:
            logger.debug(f"Lost reclaim of {serial}: {e}")
            return None
        except LockStoreError as e:
            logger.warning(f"Skipping {serial}: {e}")
            return None
        return lock

    def scan(
        self, guard: ReleaseGuard | None = None, serials: list[str] | None = None
    ) -> Lock | None:
        """Make one pass over the connected devices.

        Args:
            guard: Release guard to arm with the acquired lock
            serials: Devices to try; enumerated if not given

        Returns:
            The acquired Lock, or None if every device is held

        Raises:
            EnumerationError: If devices cannot be listed
        """
        if serials is None:
            serials = self.list_devices()
        logger.debug(f"Scanning {len(serials)} device(s): {', '.join(serials) or '-'}")

        self.store.prune(serials)

        for serial in serials:
            lock = self._try_device(serial, guard)
            if lock is not None:
                return lock
        return None

    def _delay(self, base: float) -> float:
        """Spread waiters out so they do not rescan in lockstep."""
        return base + random.uniform(0, self.jitter * base)

    def _log_holders(self) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        try:
            locks = self.store.locks()
        except LockStoreError:
            return
        for serial, lock in locks.items():
            logger.debug(
                f"{serial} held by PID {lock.pid} since {lock.acquired_at:%X}: {lock.command}"
            )

    def acquire(self, guard: ReleaseGuard | None = None) -> Lock:
        """Block until a device is locked for this process.

        Args:
            guard: Release guard to arm with the acquired lock. Arming happens
                while termination signals are held back, so an interrupted
                acquisition is always either released or never taken.

        Returns:
            The acquired Lock

        Raises:
            EnumerationError: If listing devices fails more than
                ``enumeration_retries`` times in a row
        """
        delay = self.poll_interval
        failures = 0
        waiting = False
        last_seen: list[str] | None = None

        while True:
            try:
                serials = self.list_devices()
            except EnumerationError as e:
                failures += 1
                if failures > self.enumeration_retries:
                    raise
                logger.warning(
                    f"Listing devices failed ({failures}/{self.enumeration_retries}): {e}"
                )
            else:
                failures = 0
                if serials != last_seen:
                    delay = self.poll_interval
                    last_seen = serials

                lock = self.scan(guard, serials)
                if lock is not None:
                    logger.info(f"Acquired {lock.serial}")
                    return lock

                if not waiting:
                    if serials:
                        logger.info(f"All {len(serials)} device(s) in use, waiting...")
                    else:
                        logger.info("No devices connected, waiting...")
                    waiting = True
                self._log_holders()

            pause = self._delay(delay)
            logger.debug(f"Next scan in {pause:.2f}s")
            self._sleep(pause)
            delay = min(delay * self.backoff, self.max_interval)
