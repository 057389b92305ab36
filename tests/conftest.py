"""Shared pytest configuration and fixtures for the screen_streamer test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

PRODUCER_SCRIPT = '''
import sys
import time


def main():
    data_path, splits, delay, mode = sys.argv[1], sys.argv[2], float(sys.argv[3]), sys.argv[4]
    with open(data_path, 'rb') as f:
        data = f.read()
    points = [int(p) for p in splits.split(',') if p]
    bounds = [0] + points + [len(data)]

    sys.stderr.write('synthetic producer started\\n')
    sys.stderr.flush()
    out = sys.stdout.buffer
    for start, end in zip(bounds, bounds[1:]):
        time.sleep(delay)
        out.write(data[start:end])
        out.flush()

    if mode == 'exit':
        return 0
    if mode == 'ignore':
        while True:
            time.sleep(1)
    # Wait for the quit keystroke, like ffmpeg does
    sys.stdin.read(1)
    sys.stderr.write('synthetic producer quitting\\n')
    return 0


sys.exit(main())
'''


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def producer_command(tmp_path):
    """
    Build a command line for a fake capture producer.

    The producer writes `data` to stdout split at `splits`, sleeping `delay`
    seconds before each piece, then behaves according to `mode`:
    'wait' waits for 'q' on stdin, 'exit' exits straight away and 'ignore'
    never exits on its own.
    """
    script = tmp_path / 'synthetic_producer.py'
    script.write_text(PRODUCER_SCRIPT)

    def build(data, splits=(), delay=0.0, mode='wait'):
        data_path = tmp_path / f'stream_{len(list(tmp_path.iterdir()))}.bin'
        data_path.write_bytes(data)
        return [
            sys.executable, str(script), str(data_path),
            ','.join(str(p) for p in splits), str(delay), mode,
        ]

    return build
