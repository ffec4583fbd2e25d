"""adp CLI: run a command against a device from a shared pool."""

import shlex
from functools import partial
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from adp import __version__

from .config import load_config
from .constants import EXIT_CANNOT_EXECUTE, EXIT_NOT_FOUND, EXIT_SIGNAL_BASE, EXIT_TOOL_ERROR
from .core import Allocator, LockStore, checkout_and_run, get_locks_dir, get_runtime_dir
from .errors import AdpError, ChildSpawnError, ConfigError, TerminationRequested
from .logging import configure_logging
from .services import Adb, current_holder


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"adp {__version__}")
        raise typer.Exit()


def _error(console: Console, message: object, code: int) -> typer.Exit:
    console.print(f"[red]Error: {escape(str(message))}[/red]")
    return typer.Exit(code)


def _spawn_exit_code(error: ChildSpawnError) -> int:
    """Pick the shell exit code for a command that could not be started."""
    if isinstance(error.cause, FileNotFoundError):
        return EXIT_NOT_FOUND
    return EXIT_CANNOT_EXECUTE


app = typer.Typer(
    name="adp",
    help="Run a command with exclusive use of one Android device from a shared pool",
    add_completion=False,
)


@app.command(
    context_settings={
        # Everything from COMMAND on belongs to the wrapped command
        "allow_interspersed_args": False,
        "ignore_unknown_options": True,
    },
)
def main(
    command: Annotated[
        list[str],
        typer.Argument(
            metavar="COMMAND [ARGS]...",
            help="Command to run once a device is free; ANDROID_SERIAL names the device",
            show_default=False,
        ),
    ],
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v, -vv)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only report warnings and errors",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="ADP_CONFIG",
        help="Config file (default: ~/.config/adp/config.toml)",
    ),
) -> None:
    """Wait for a free device, then run COMMAND against it.

    The device is held until COMMAND exits and adp exits with COMMAND's
    exit code. Options are only recognised before COMMAND.
    """
    console = configure_logging(verbosity=verbose, quiet=quiet, no_color=no_color)

    try:
        cfg = load_config(config)
    except ConfigError as e:
        raise _error(console, e, EXIT_TOOL_ERROR) from None

    store = LockStore(get_locks_dir(get_runtime_dir(cfg.runtime_dir)))
    adb = Adb(cfg.adb.exec, timeout=cfg.adb.timeout)

    prepare = None
    if cfg.boot.wait:
        prepare = partial(
            adb.wait_for_boot,
            attempts=cfg.boot.attempts,
            interval=cfg.boot.interval,
        )

    try:
        store.ensure()
        allocator = Allocator(
            store,
            adb.devices,
            current_holder(),
            command=shlex.join(command),
            poll_interval=cfg.wait.poll_interval,
            max_interval=cfg.wait.max_interval,
            backoff=cfg.wait.backoff,
            jitter=cfg.wait.jitter,
            enumeration_retries=cfg.wait.enumeration_retries,
        )
        exit_code = checkout_and_run(
            allocator,
            command,
            prepare=prepare,
            env_var=cfg.runner.serial_env,
            grace_period=cfg.runner.grace_period,
        )
    except TerminationRequested as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise typer.Exit(EXIT_SIGNAL_BASE + e.signum) from None
    except ChildSpawnError as e:
        raise _error(console, e, _spawn_exit_code(e)) from None
    except AdpError as e:
        raise _error(console, e, EXIT_TOOL_ERROR) from None

    raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
