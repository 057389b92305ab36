"""
Session control

A StreamingSession starts and stops one capture session at a time: the
producer process, the capture loop that feeds the frame store, and the HTTP
server that broadcasts it. Callers (CLI, GUI) only see start_session() and
stop_session() and the SessionResult they return.
"""

import asyncio
import logging

from screen_streamer.capture_loop import CaptureLoop
from screen_streamer.errors import LaunchError
from screen_streamer.frame_store import LatestFrameStore
from screen_streamer.preview import PreviewDecoder
from screen_streamer.streaming_server import StreamBroadcastServer, get_server_ip
from screen_streamer.subprocess_pipe import SubprocessPipe


class SessionResult:
    def __init__(self, ok, status, error=None):
        self.ok = ok
        self.status = status
        self.error = error

    def __bool__(self):
        return self.ok

    def __repr__(self):
        return f"SessionResult(ok={self.ok}, status={self.status!r})"


class CaptureSession:
    """Everything that lives exactly as long as one capture."""

    def __init__(self, config, on_preview=None):
        self.config = config
        self.stop_event = asyncio.Event()
        self.store = LatestFrameStore()
        self.pipe = SubprocessPipe(config.producer)
        preview_decoder = None
        if on_preview is not None and config.preview_enabled:
            preview_decoder = PreviewDecoder(config.preview_width)
        self.capture_loop = CaptureLoop(
            self.pipe, self.store, self.stop_event,
            max_buffer_size=config.max_buffer_size,
            preview_decoder=preview_decoder,
            on_preview=on_preview,
        )
        self.server = StreamBroadcastServer(
            self.store, self.stop_event,
            host=config.server.host,
            port=config.server.port,
            pacing_interval=config.server.pacing_interval,
            poll_interval=config.server.poll_interval,
        )
        self.capture_task = None


class StreamingSession:
    def __init__(self, on_preview=None, on_status=None):
        self.on_preview = on_preview
        self.on_status = on_status
        self.session = None
        self.status = 'Stopped'
        self._lock = asyncio.Lock()

    @property
    def active(self):
        return self.session is not None

    def _set_status(self, status):
        self.status = status
        logging.info(f"Session status: {status}")
        if self.on_status is not None:
            try:
                self.on_status(status)
            except Exception as e:
                logging.error(f"Status callback failed: {e}")

    async def start_session(self, config):
        async with self._lock:
            if self.session is not None:
                return SessionResult(False, self.status, RuntimeError("A session is already active"))

            self._set_status('Starting...')
            session = CaptureSession(config, self.on_preview)
            try:
                await session.pipe.start()
            except LaunchError as e:
                logging.error(str(e))
                self._set_status(f'Failed: {e}')
                return SessionResult(False, self.status, e)

            try:
                await session.server.start()
            except OSError as e:
                logging.error(f"Failed to start stream server: {e}")
                await session.pipe.request_stop()
                self._set_status(f'Failed: {e}')
                return SessionResult(False, self.status, e)

            session.capture_task = asyncio.create_task(session.capture_loop.run())
            session.capture_task.add_done_callback(self._capture_done)
            self.session = session

            self._set_status(f'Streaming on http://{get_server_ip()}:{session.server.bound_port()}')
            return SessionResult(True, self.status)

    def _capture_done(self, task):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logging.error(f"Capture loop failed: {error}")

    async def stop_session(self):
        async with self._lock:
            session = self.session
            if session is None:
                return SessionResult(True, self.status)

            session.stop_event.set()
            await session.server.stop()

            if not session.capture_task.done():
                session.capture_task.cancel()
            # Failures are logged by _capture_done
            await asyncio.wait({session.capture_task})
            if session.pipe.is_running():
                # Cancelled while the loop was already shutting the producer down
                await session.pipe.request_stop()

            session.store.clear()
            self.session = None
            logging.info(f"Capture finished: {session.capture_loop.result}")
            self._set_status('Stopped')
            return SessionResult(True, self.status)

    async def wait_capture(self):
        """Wait until the current capture ends on its own (producer exit) or is stopped."""
        session = self.session
        if session is None or session.capture_task is None:
            return None
        await asyncio.wait({session.capture_task})
        return session.capture_loop.result
