"""Lock models for device checkout.

A device is held by writing a Lock record named after its serial. The
record carries enough about the holder process (PID and start time) for
any other process to decide whether the holder is still alive.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Holder(BaseModel):
    """Identity of a process holding a device lock.

    The start time distinguishes a live holder from an unrelated process
    that was later given the same PID.

    Attributes:
        pid: Process ID of the holder.
        create_time: Process start time in seconds since the epoch.
    """

    model_config = ConfigDict(frozen=True)

    pid: int = Field(description="Process ID holding the lock")
    create_time: float = Field(description="Holder process start time (epoch seconds)")


class Lock(BaseModel):
    """Device lock record written to <runtime_dir>/locks/<serial>.lock.

    Attributes:
        serial: Serial of the held device.
        pid: Process ID of the lock holder.
        create_time: Start time of the lock holder process.
        command: Command line the holder is running against the device.
        acquired_at: When the lock was acquired.
    """

    serial: str = Field(description="Device serial")
    pid: int = Field(description="Process ID holding the lock")
    create_time: float = Field(description="Holder process start time (epoch seconds)")
    command: str = Field(default="", description="Command the holder runs")
    acquired_at: datetime = Field(default_factory=datetime.now)

    @property
    def holder(self) -> Holder:
        """Holder identity recorded in this lock."""
        return Holder(pid=self.pid, create_time=self.create_time)
