"""Device lock store.

One JSON record per device serial, shared by every adp process on the host.
A record exists exactly while some process holds the device.

- Acquiring links a fully written temp file into place, so it is atomic
  and a visible record is never half written.
- Reclaiming and releasing delete records; both re-read the record under
  an exclusive flock on the store's mutex file first. The flock is polled
  with a timeout, so a stuck peer cannot block anyone indefinitely.
- A holder that dies mid-acquire leaves a scratch file named after its PID
  and start time; prune removes those once the holder is gone.
- A record is stale when its holder process is gone (or the record cannot
  be parsed). There is no timeout: a holder running a long test keeps its
  device for as long as it lives.
"""

import contextlib
import fcntl
import logging
import os
import re
import time
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from urllib.parse import quote, unquote

from pydantic import ValidationError

from ..constants import MUTEX_POLL_INTERVAL, MUTEX_TIMEOUT
from ..errors import LockStoreError, StaleLockReclaimRace
from ..models import Holder, Lock
from ..services.process import is_holder_alive

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
MUTEX_FILE = ".mutex"

# .<record name>.<pid>_<start time>.tmp, written by try_acquire
TEMP_NAME = re.compile(r"^\.(?P<record>.+)\.(?P<pid>\d+)_(?P<create_time>[^_]+)\.tmp$")


class LockStore:
    """Directory of device lock records."""

    def __init__(
        self,
        root: Path,
        is_alive: Callable[[Holder], bool] = is_holder_alive,
        mutex_timeout: float = MUTEX_TIMEOUT,
    ) -> None:
        self.root = root
        self._is_alive = is_alive
        self.mutex_timeout = mutex_timeout

    def ensure(self) -> None:
        """Create the store directory if needed."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LockStoreError(f"Failed to create lock directory {self.root}: {e}") from e

    def lock_path(self, serial: str) -> Path:
        """Get path to the lock record of a device."""
        return self.root / f"{quote(serial, safe='')}{LOCK_SUFFIX}"

    def temp_path(self, serial: str, holder: Holder) -> Path:
        """Get path of the scratch file a holder writes before linking its record."""
        name = self.lock_path(serial).name
        return self.root / f".{name}.{holder.pid}_{holder.create_time!r}.tmp"

    def try_acquire(self, serial: str, holder: Holder, command: str = "") -> Lock | None:
        """Attempt to take the lock of a device without blocking.

        Args:
            serial: Device to lock
            holder: Identity of the acquiring process
            command: Command line recorded for diagnostics

        Returns:
            The written Lock if acquired, None if the device is already held

        Raises:
            LockStoreError: On I/O failure
        """
        lock = Lock(
            serial=serial,
            pid=holder.pid,
            create_time=holder.create_time,
            command=command,
        )
        path = self.lock_path(serial)
        tmp_path = self.temp_path(serial, holder)

        try:
            tmp_path.write_text(lock.model_dump_json(indent=2))
            try:
                os.link(tmp_path, path)
            except FileExistsError:
                return None
            finally:
                tmp_path.unlink(missing_ok=True)
        except OSError as e:
            raise LockStoreError(f"Failed to lock {serial}: {e}") from e

        logger.debug(f"Locked {serial} for PID {holder.pid}")
        return lock

    def _read(self, serial: str) -> tuple[bool, Lock | None]:
        """Read a record as (exists, lock); lock is None if unparsable."""
        try:
            content = self.lock_path(serial).read_text()
        except FileNotFoundError:
            return False, None
        except OSError as e:
            raise LockStoreError(f"Failed to read lock for {serial}: {e}") from e

        try:
            return True, Lock.model_validate_json(content)
        except ValidationError:
            return True, None

    def get_current_lock(self, serial: str) -> Lock | None:
        """Get the lock record of a device.

        Returns:
            Lock if a valid record exists, None if absent or corrupted
        """
        _, lock = self._read(serial)
        return lock

    def _stale(self, lock: Lock | None) -> bool:
        # An unparsable record was left by a crash mid-write
        return lock is None or not self._is_alive(lock.holder)

    def is_stale(self, serial: str) -> bool:
        """Check if a device is locked by a holder that is no longer alive.

        Returns:
            True if the record exists and is corrupted or its holder is dead
        """
        exists, lock = self._read(serial)
        return exists and self._stale(lock)

    @contextlib.contextmanager
    def _mutex(self) -> Iterator[None]:
        """Hold the store-wide exclusive flock.

        The lock is polled rather than waited on, so a peer stuck while
        holding it costs at most ``mutex_timeout`` seconds.
        """
        try:
            f = open(self.root / MUTEX_FILE, "a")
        except OSError as e:
            raise LockStoreError(f"Failed to open lock store mutex in {self.root}: {e}") from e

        with f:
            deadline = time.monotonic() + self.mutex_timeout
            while True:
                try:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise LockStoreError(
                            f"Timed out after {self.mutex_timeout:g}s waiting for "
                            f"lock store mutex in {self.root}"
                        ) from None
                    time.sleep(MUTEX_POLL_INTERVAL)
                except OSError as e:
                    raise LockStoreError(f"Failed to lock store mutex: {e}") from e
            try:
                yield
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    def reclaim(self, serial: str, expected: Holder | None = None) -> None:
        """Forcibly clear a stale lock.

        The record is re-read under the store mutex. If it changed since the
        caller judged it stale, nothing is removed.

        Args:
            serial: Device whose lock to clear
            expected: Holder the caller saw in the stale record, if known

        Raises:
            StaleLockReclaimRace: If the record is gone, changed holder or is live
            LockStoreError: On I/O failure
        """
        with self._mutex():
            exists, lock = self._read(serial)
            if not exists:
                raise StaleLockReclaimRace(f"Lock for {serial} already cleared")
            if expected is not None and (lock is None or lock.holder != expected):
                raise StaleLockReclaimRace(f"Lock for {serial} changed holder")
            if not self._stale(lock):
                raise StaleLockReclaimRace(f"Lock for {serial} is held by a live process")

            try:
                self.lock_path(serial).unlink()
            except FileNotFoundError:
                raise StaleLockReclaimRace(f"Lock for {serial} already cleared") from None
            except OSError as e:
                raise LockStoreError(f"Failed to clear lock for {serial}: {e}") from e

        if lock is None:
            logger.info(f"Reclaimed {serial} from a corrupted lock record")
        else:
            logger.info(f"Reclaimed {serial} from dead process {lock.pid}")

    def release(self, serial: str, holder: Holder) -> bool:
        """Release a lock if still held by the given holder.

        Releasing a lock that was already released, or that now belongs to
        someone else, does nothing.

        Returns:
            True if the record was removed

        Raises:
            LockStoreError: On I/O failure
        """
        with self._mutex():
            _, lock = self._read(serial)
            if lock is None or lock.holder != holder:
                logger.debug(f"Not releasing {serial}: not held by PID {holder.pid}")
                return False

            try:
                self.lock_path(serial).unlink()
            except FileNotFoundError:
                return False
            except OSError as e:
                raise LockStoreError(f"Failed to release {serial}: {e}") from e

        logger.debug(f"Released {serial}")
        return True

    def locks(self) -> dict[str, Lock]:
        """Get all valid lock records keyed by serial."""
        result = {}
        try:
            paths = sorted(self.root.glob(f"*{LOCK_SUFFIX}"))
        except OSError as e:
            raise LockStoreError(f"Failed to list {self.root}: {e}") from e
        for path in paths:
            serial = unquote(path.name.removesuffix(LOCK_SUFFIX))
            lock = self.get_current_lock(serial)
            if lock is not None:
                result[serial] = lock
        return result

    def prune_temp_files(self) -> list[Path]:
        """Remove scratch files left by holders that died inside try_acquire.

        Returns:
            Paths that were removed
        """
        removed = []
        try:
            paths = list(self.root.glob(".*.tmp"))
        except OSError as e:
            logger.warning(f"Failed to list {self.root}: {e}")
            return removed

        for path in paths:
            match = TEMP_NAME.match(path.name)
            if match is None:
                continue
            try:
                holder = Holder(pid=int(match["pid"]), create_time=float(match["create_time"]))
            except ValueError:
                continue
            if self._is_alive(holder):
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove {path.name}: {e}")
                continue
            logger.debug(f"Removed {path.name} left by dead process {holder.pid}")
            removed.append(path)
        return removed

    def prune(self, known: Iterable[str]) -> list[str]:
        """Clear stale locks of devices that are no longer connected.

        Scratch files of dead holders are removed as well.

        Args:
            known: Serials currently reported by the device enumerator

        Returns:
            Serials whose records were removed
        """
        self.prune_temp_files()
        known = set(known)
        removed = []
        try:
            paths = list(self.root.glob(f"*{LOCK_SUFFIX}"))
        except OSError as e:
            logger.warning(f"Failed to list {self.root}: {e}")
            return removed

        for path in paths:
            serial = unquote(path.name.removesuffix(LOCK_SUFFIX))
            if serial in known:
                continue
            try:
                if self.is_stale(serial):
                    self.reclaim(serial)
                    removed.append(serial)
            except StaleLockReclaimRace:
                continue
            except LockStoreError as e:
                logger.warning(f"Failed to prune lock for {serial}: {e}")
        return removed
