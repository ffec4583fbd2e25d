"""Process runner for the wrapped command."""

import logging
import os
import shlex
import signal
import subprocess
import time
from collections.abc import Mapping
from types import FrameType

from ..constants import EXIT_SIGNAL_BASE, GRACE_PERIOD, SERIAL_ENV_VAR
from ..errors import ChildSpawnError, TerminationRequested
from .signals import deferred_signals, termination_handlers

logger = logging.getLogger(__name__)

# How often the wait loop checks whether the grace period ran out
WAIT_POLL_INTERVAL = 0.2


def build_child_env(
    serial: str,
    env_var: str = SERIAL_ENV_VAR,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build the environment for the child, pointing it at one device.

    The parent's own environment is left untouched.
    """
    env = dict(os.environ if base is None else base)
    env[env_var] = serial
    return env


def exit_code_from_returncode(returncode: int) -> int:
    """Map a subprocess return code to a shell-style exit code."""
    if returncode < 0:
        return EXIT_SIGNAL_BASE - returncode
    return returncode


def _wait(process: subprocess.Popen, received: list[int], grace_period: float) -> int:
    """Wait for the child, killing it if it outlives the grace period."""
    deadline: float | None = None
    while True:
        if received and deadline is None:
            deadline = time.monotonic() + grace_period
        try:
            return process.wait(timeout=WAIT_POLL_INTERVAL)
        except subprocess.TimeoutExpired:
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning(
                    f"Command did not exit {grace_period:g}s after "
                    f"{signal.Signals(received[0]).name}, killing PID {process.pid}"
                )
                process.kill()
                return process.wait()


def run_command(
    command: list[str],
    serial: str,
    *,
    env_var: str = SERIAL_ENV_VAR,
    grace_period: float = GRACE_PERIOD,
) -> int:
    """Run a command against a device and wait for it to finish.

    The command inherits stdin/stdout/stderr. Termination signals received
    while it runs are passed on to it, and adp only returns once the
    command has actually exited.

    Args:
        command: Program and arguments to run
        serial: Device serial exported to the command
        env_var: Name of the environment variable carrying the serial
        grace_period: Seconds the command gets to exit after a forwarded
            signal before it is killed

    Returns:
        The command's return code (negative if it died from a signal)

    Raises:
        ChildSpawnError: If the command cannot be started
        TerminationRequested: If adp was signalled while the command ran;
            raised after the command has exited
    """
    env = build_child_env(serial, env_var)
    logger.info(f"Running {shlex.join(command)} with {env_var}={serial}")

    received: list[int] = []
    process: subprocess.Popen | None = None

    def _send(child: subprocess.Popen, signum: int) -> None:
        logger.info(f"Forwarding {signal.Signals(signum).name} to PID {child.pid}")
        child.send_signal(signum)

    def _forward(signum: int, frame: FrameType | None) -> None:
        received.append(signum)
        # Signals that arrive before the child is known are sent once it is
        if process is not None:
            _send(process, signum)

    with termination_handlers(_forward):
        if received:
            raise TerminationRequested(received[0])
        try:
            child = subprocess.Popen(command, env=env)
        except OSError as e:
            raise ChildSpawnError(command[0], e) from e

        try:
            with deferred_signals():
                process = child
                for signum in received:
                    _send(child, signum)
            logger.debug(f"Started PID {child.pid}")
            returncode = _wait(child, received, grace_period)
        finally:
            # Only reached with a live child if waiting itself blew up
            if child.poll() is None:
                child.kill()
                child.wait()

    logger.debug(f"PID {child.pid} exited with {returncode}")
    if received:
        raise TerminationRequested(received[0])
    return returncode
