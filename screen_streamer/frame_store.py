"""
Latest-frame store shared between the capture loop and the stream clients.

The store holds a single reference. Publishing replaces it, reading returns
it; frames are immutable so a reader can keep using what it got after the
slot has moved on. Intermediate frames are dropped when readers are slower
than the producer.
"""

import abc
from threading import Lock


class FrameStore(abc.ABC):
    @abc.abstractmethod
    def publish(self, frame):
        """Make `frame` the latest frame."""

    @abc.abstractmethod
    def snapshot(self):
        """Return the latest frame, or None if nothing was published yet."""

    @abc.abstractmethod
    def clear(self):
        """Forget the current frame."""


class LatestFrameStore(FrameStore):
    def __init__(self):
        self._lock = Lock()
        self._frame = None
        self._publish_count = 0

    def publish(self, frame):
        if frame is None:
            raise ValueError("Cannot publish an empty frame")
        with self._lock:
            self._frame = frame
            self._publish_count += 1

    def snapshot(self):
        with self._lock:
            return self._frame

    def clear(self):
        with self._lock:
            self._frame = None

    @property
    def publish_count(self):
        with self._lock:
            return self._publish_count
