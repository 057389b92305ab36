"""
Exceptions raised by the capture and streaming pipeline.

Only LaunchError ever reaches the caller of a session. The others are
recovered where they happen and end up in the log.
"""


class StreamerError(Exception):
    """Base class for all screen_streamer errors."""


class LaunchError(StreamerError):
    """The capture producer could not be started."""

    def __init__(self, command, reason):
        self.command = list(command)
        self.reason = reason
        super().__init__(f"Failed to launch '{self.command[0] if self.command else ''}': {reason}")


class StreamDesyncError(StreamerError):
    """The scanner buffer grew past its cap without a frame boundary."""

    def __init__(self, discarded, limit):
        self.discarded = discarded
        self.limit = limit
        super().__init__(f"No frame boundary in {discarded} bytes (limit {limit}), buffer discarded")


class ProducerExited(StreamerError):
    """The producer closed its output. Marks a clean end of session."""


class ConnectionAborted(StreamerError):
    """A streaming client went away while a part was being written."""


class ShutdownTimeout(StreamerError):
    """The producer ignored the quit request and had to be killed."""

    def __init__(self, pid, timeout):
        self.pid = pid
        self.timeout = timeout
        super().__init__(f"Producer pid {pid} did not exit within {timeout}s, killing it")
