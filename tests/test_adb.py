"""Tests for the adb wrapper."""

import subprocess
from unittest import mock

import pytest

from adp.errors import DeviceNotReadyError, EnumerationError
from adp.services import Adb, AdbError, parse_devices

from .fakes import FakeAdb


def completed(
    stdout: str = "", returncode: int = 0, stderr: str = ""
) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(["adb"], returncode, stdout=stdout, stderr=stderr)


class TestParseDevices:
    """Tests for parse_devices."""

    def test_parses_long_listing(self) -> None:
        """Serials come back in adb's order; status columns are ignored."""
        output = (
            "List of devices attached\n"
            "emulator-5554          device product:sdk_gphone64 model:sdk_gphone64 device:emu64\n"
            "0123456789ABCDEF       unauthorized usb:1-1\n"
            "192.168.1.5:5555       offline\n"
        )
        assert parse_devices(output) == ["emulator-5554", "0123456789ABCDEF", "192.168.1.5:5555"]

    def test_no_devices(self) -> None:
        """A bare header means no devices."""
        assert parse_devices("List of devices attached\n\n") == []

    def test_skips_daemon_messages(self) -> None:
        """Lines printed while adb starts its server are ignored."""
        output = (
            "* daemon not running; starting now at tcp:5037\n"
            "* daemon started successfully\n"
            "List of devices attached\n"
            "serial1\tdevice\n"
        )
        assert parse_devices(output) == ["serial1"]

    def test_missing_header(self) -> None:
        """Output that is not a device list is rejected."""
        with pytest.raises(EnumerationError, match="Unexpected adb devices output"):
            parse_devices("error: something went wrong\n")

    def test_empty_output(self) -> None:
        """Empty output is rejected."""
        with pytest.raises(EnumerationError):
            parse_devices("")

    def test_malformed_line(self) -> None:
        """A device line without a status column is rejected."""
        with pytest.raises(EnumerationError, match="Malformed"):
            parse_devices("List of devices attached\nserial1\n")


class TestAdbRun:
    """Tests for Adb.run and Adb.devices."""

    def test_devices_runs_adb(self) -> None:
        """devices() calls adb devices -l with the configured executable."""
        with mock.patch("adp.services.adb.subprocess.run") as run:
            run.return_value = completed("List of devices attached\nserial1\tdevice\n")
            assert Adb("/opt/adb", timeout=5).devices() == ["serial1"]

        run.assert_called_once()
        assert run.call_args.args[0] == ["/opt/adb", "devices", "-l"]
        assert run.call_args.kwargs["timeout"] == 5

    def test_nonzero_exit(self) -> None:
        """A failing adb surfaces its stderr."""
        with mock.patch("adp.services.adb.subprocess.run") as run:
            run.return_value = completed(returncode=1, stderr="cannot connect to daemon")
            with pytest.raises(AdbError, match="cannot connect to daemon"):
                Adb().run(["devices"])

    def test_missing_executable(self) -> None:
        """A missing adb is reported by path."""
        with mock.patch("adp.services.adb.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(AdbError, match="adb not found: /nope/adb"):
                Adb("/nope/adb").run(["devices"])

    def test_timeout(self) -> None:
        """A hung adb is reported as a timeout."""
        with mock.patch(
            "adp.services.adb.subprocess.run",
            side_effect=subprocess.TimeoutExpired(["adb"], 3),
        ):
            with pytest.raises(AdbError, match="timed out after 3 seconds"):
                Adb(timeout=3).run(["devices"])

    def test_devices_wraps_errors(self) -> None:
        """devices() turns adb failures into EnumerationError."""
        with mock.patch("adp.services.adb.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(EnumerationError, match="adb not found"):
                Adb().devices()

    def test_getprop_strips_output(self) -> None:
        """getprop targets the serial and strips the trailing newline."""
        with mock.patch("adp.services.adb.subprocess.run") as run:
            run.return_value = completed("1\r\n")
            assert Adb().getprop("serial1", "sys.boot_completed") == "1"
        assert run.call_args.args[0] == [
            "adb",
            "-s",
            "serial1",
            "shell",
            "getprop",
            "sys.boot_completed",
        ]


class TestWaitForBoot:
    """Tests for Adb.wait_for_boot."""

    @staticmethod
    def adb_with_props(*values: object) -> Adb:
        """Adb whose getprop returns (or raises) the given values in order."""
        adb = Adb()
        adb.getprop = mock.Mock(side_effect=list(values))  # type: ignore[method-assign]
        return adb

    def test_already_booted(self) -> None:
        """A booted device passes without sleeping."""
        adb = self.adb_with_props("stopped", "1")
        sleep = mock.Mock()
        adb.wait_for_boot("serial1", attempts=3, interval=1.0, sleep=sleep)
        sleep.assert_not_called()

    def test_waits_until_booted(self) -> None:
        """Properties are polled until they reach the expected values."""
        adb = self.adb_with_props("running", "", "stopped", "0", "1")
        sleep = mock.Mock()
        adb.wait_for_boot("serial1", attempts=5, interval=0.5, sleep=sleep)
        assert sleep.call_args_list == [mock.call(0.5)] * 3

    def test_adb_errors_count_as_not_ready(self) -> None:
        """A failed read is retried rather than fatal."""
        adb = self.adb_with_props(AdbError("device offline"), "stopped", "1")
        adb.wait_for_boot("serial1", attempts=2, interval=0, sleep=mock.Mock())

    def test_gives_up(self) -> None:
        """A device that never boots raises DeviceNotReadyError."""
        adb = self.adb_with_props("running", "running", "running")
        sleep = mock.Mock()
        with pytest.raises(DeviceNotReadyError, match="serial1 did not finish booting"):
            adb.wait_for_boot("serial1", attempts=3, interval=1.0, sleep=sleep)
        # No sleep after the final attempt
        assert sleep.call_count == 2


class TestFakeAdbExecutable:
    """Adb against an executable that behaves like adb."""

    def test_devices(self, fake_adb: FakeAdb) -> None:
        """Serials are read from a real subprocess."""
        fake_adb.set_devices("serial1", "serial2")
        assert Adb(str(fake_adb.path)).devices() == ["serial1", "serial2"]

    def test_wait_for_boot(self, fake_adb: FakeAdb) -> None:
        """A booted device passes the boot check."""
        Adb(str(fake_adb.path)).wait_for_boot("serial1", attempts=1, interval=0)

    def test_unsupported_command(self, fake_adb: FakeAdb) -> None:
        """Non-zero exits raise AdbError."""
        with pytest.raises(AdbError, match="unsupported"):
            Adb(str(fake_adb.path)).run(["reboot"])
