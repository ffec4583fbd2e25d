"""Shared test fixtures for adp tests."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from adp.core import LockStore
from adp.models import Holder

from .fakes import FakeAdb, FakeDevices, FakeLiveness


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def liveness() -> FakeLiveness:
    """Liveness check with no live holders."""
    return FakeLiveness()


@pytest.fixture
def devices() -> FakeDevices:
    """Enumerator reporting a single device."""
    return FakeDevices(["serial1"])


@pytest.fixture
def store(tmp_path: Path, liveness: FakeLiveness) -> LockStore:
    """Create an empty lock store using the fake liveness check."""
    s = LockStore(tmp_path / "locks", is_alive=liveness)
    s.ensure()
    return s


@pytest.fixture
def alice(liveness: FakeLiveness) -> Holder:
    """A live holder."""
    holder = Holder(pid=1001, create_time=1700000000.0)
    liveness.alive.add(holder)
    return holder


@pytest.fixture
def bob(liveness: FakeLiveness) -> Holder:
    """Another live holder."""
    holder = Holder(pid=1002, create_time=1700000100.0)
    liveness.alive.add(holder)
    return holder


@pytest.fixture
def fake_adb(tmp_path: Path) -> FakeAdb:
    """Create an executable fake adb with one connected device."""
    adb = FakeAdb.create(tmp_path)
    adb.set_devices("serial1")
    return adb


@pytest.fixture
def config_file(tmp_path: Path, fake_adb: FakeAdb) -> Path:
    """Write a config pointing adp at the fake adb and a private runtime dir."""
    path = tmp_path / "config.toml"
    path.write_text(
        f"""runtime_dir = "{tmp_path / "runtime"}"

[adb]
exec = "{fake_adb.path}"
timeout = 10

[boot]
wait = true
attempts = 2
interval = 0

[wait]
poll_interval = 0.01
max_interval = 0.05
enumeration_retries = 0

[runner]
grace_period = 5
"""
    )
    return path
