"""Constants for adp."""

import signal

# Environment variable that carries the acquired serial into the child
SERIAL_ENV_VAR = "ANDROID_SERIAL"

# Subprocess timeouts (seconds)
ADB_TIMEOUT = 30

# Wait loop (seconds)
POLL_INTERVAL = 0.5
MAX_POLL_INTERVAL = 5.0
POLL_BACKOFF = 1.5
POLL_JITTER = 0.25
ENUMERATION_RETRIES = 5

# Boot readiness polling
BOOT_ATTEMPTS = 60
BOOT_INTERVAL = 1.0

# Seconds a child gets to exit after a forwarded signal before SIGKILL
GRACE_PERIOD = 10.0

# Holder start times are compared with this slack (seconds)
START_TIME_TOLERANCE = 1.0

# Longest wait for the lock store mutex, and how often it is retried (seconds)
MUTEX_TIMEOUT = 10.0
MUTEX_POLL_INTERVAL = 0.05

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)

# Exit codes used when the wrapped command never ran
EXIT_TOOL_ERROR = 125
EXIT_CANNOT_EXECUTE = 126
EXIT_NOT_FOUND = 127
EXIT_SIGNAL_BASE = 128
