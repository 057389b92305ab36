"""Tests for LatestFrameStore."""

import threading

import pytest

from screen_streamer.frame_scanner import Frame
from screen_streamer.frame_store import FrameStore, LatestFrameStore


def test_empty_until_first_publish():
    store = LatestFrameStore()

    assert store.snapshot() is None
    assert store.publish_count == 0


def test_snapshot_returns_last_published():
    store = LatestFrameStore()
    frames = [Frame(bytes([i]) * 10, i) for i in range(1, 6)]

    for frame in frames:
        store.publish(frame)

    assert store.snapshot() is frames[-1]
    assert store.publish_count == 5


def test_snapshot_reference_survives_overwrite():
    store = LatestFrameStore()
    first = Frame(b'first', 1)
    store.publish(first)

    held = store.snapshot()
    store.publish(Frame(b'second', 2))

    assert held.data == b'first'
    assert store.snapshot().data == b'second'


def test_clear():
    store = LatestFrameStore()
    store.publish(Frame(b'x', 1))

    store.clear()

    assert store.snapshot() is None


def test_publish_none_rejected():
    with pytest.raises(ValueError):
        LatestFrameStore().publish(None)


def test_is_a_frame_store():
    assert isinstance(LatestFrameStore(), FrameStore)


def test_concurrent_readers_only_see_published_frames():
    store = LatestFrameStore()
    published = [Frame(bytes([i % 256]) * 64, i) for i in range(1, 2001)]
    known = {id(frame) for frame in published}
    failures = []
    done = threading.Event()

    def reader():
        last_sequence = 0
        while not done.is_set():
            frame = store.snapshot()
            if frame is None:
                continue
            if id(frame) not in known:
                failures.append(f"unknown frame {frame.sequence}")
            if frame.sequence < last_sequence:
                failures.append(f"went back from {last_sequence} to {frame.sequence}")
            last_sequence = frame.sequence

    readers = [threading.Thread(target=reader) for _ in range(4)]
    for thread in readers:
        thread.start()
    for frame in published:
        store.publish(frame)
    done.set()
    for thread in readers:
        thread.join(timeout=5)

    assert failures == []
    assert store.snapshot() is published[-1]
