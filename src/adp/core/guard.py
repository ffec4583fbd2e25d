"""Release guard for a checked-out device."""

import logging
from types import TracebackType

from ..errors import LockStoreError
from ..models import Lock
from .lock_store import LockStore
from .signals import deferred_signals

logger = logging.getLogger(__name__)


class ReleaseGuard:
    """Releases the device lock it was armed with exactly once.

    The guard is entered before acquisition starts and armed by the
    allocator at the moment a lock is taken, so every way out of the
    ``with`` block (normal return, failed command, termination signal)
    goes through ``release``.
    """

    def __init__(self, store: LockStore) -> None:
        self.store = store
        self.lock: Lock | None = None
        self._released = False

    @property
    def serial(self) -> str | None:
        """Serial of the guarded device, if armed."""
        return self.lock.serial if self.lock is not None else None

    def arm(self, lock: Lock) -> None:
        """Start guarding a freshly acquired lock."""
        if self.lock is not None:
            raise RuntimeError(f"Guard already holds {self.lock.serial}")
        self.lock = lock

    def release(self) -> None:
        """Release the guarded lock. Later calls do nothing.

        Termination signals are held back until the record is gone, so a
        repeated Ctrl+C cannot cut a release short.
        """
        if self.lock is None or self._released:
            return
        with deferred_signals():
            try:
                released = self.store.release(self.lock.serial, self.lock.holder)
            except LockStoreError as e:
                logger.warning(
                    f"Failed to release {self.lock.serial}: {e}. "
                    "It will be reclaimed once this process exits."
                )
            else:
                if released:
                    logger.info(f"Released {self.lock.serial}")
            self._released = True

    def __enter__(self) -> "ReleaseGuard":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
