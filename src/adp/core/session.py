"""Acquire a device, prepare it, run a command on it and give it back."""

from collections.abc import Callable

from ..constants import GRACE_PERIOD, SERIAL_ENV_VAR
from .allocator import Allocator
from .guard import ReleaseGuard
from .runner import exit_code_from_returncode, run_command
from .signals import termination_handlers


def checkout_and_run(
    allocator: Allocator,
    command: list[str],
    *,
    prepare: Callable[[str], None] | None = None,
    env_var: str = SERIAL_ENV_VAR,
    grace_period: float = GRACE_PERIOD,
) -> int:
    """Run a command with exclusive use of one device.

    Args:
        allocator: Allocator to obtain the device from (blocks until one is free)
        command: Program and arguments to run
        prepare: Called with the serial before the command runs, e.g. to
            wait for the device to boot
        env_var: Environment variable that carries the serial
        grace_period: Seconds the command gets to exit after a forwarded signal

    Returns:
        Exit code of the command (128 + N if it died from signal N)

    Raises:
        EnumerationError: If devices could not be listed
        DeviceNotReadyError: If ``prepare`` gave up on the device
        ChildSpawnError: If the command could not be started
        TerminationRequested: If adp was signalled while waiting or running
    """
    with termination_handlers(), ReleaseGuard(allocator.store) as guard:
        lock = allocator.acquire(guard)
        if prepare is not None:
            prepare(lock.serial)
        returncode = run_command(
            command,
            lock.serial,
            env_var=env_var,
            grace_period=grace_period,
        )
    return exit_code_from_returncode(returncode)
