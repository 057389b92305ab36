"""
Lifecycle of the external capture process.

The producer writes concatenated JPEG frames to stdout, diagnostics to stderr,
and quits cleanly when it reads a 'q' keystroke on stdin (ffmpeg's protocol).
Shutdown is two-phase: ask politely, then kill after a timeout, because the
screen grabber only releases its capture handles on a clean exit.
"""

import asyncio
import enum
import logging

from screen_streamer.errors import LaunchError, ShutdownTimeout

producer_log = logging.getLogger('screen_streamer.producer')


class ProducerState(enum.Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    STOP_REQUESTED = 'stop_requested'
    EXITED = 'exited'
    FORCE_KILLED = 'force_killed'


class SubprocessPipe:
    def __init__(self, config):
        self.config = config
        self.process = None
        self.state = ProducerState.IDLE
        self.command = None
        self._stderr_task = None

    async def start(self):
        """Launch the producer. Raises LaunchError if it cannot be started."""
        if self.state is not ProducerState.IDLE:
            raise RuntimeError(f"Producer already started (state={self.state.value})")
        self.command = self.config.build_command()
        logging.info(f"Launching producer: {' '.join(self.command)}")
        try:
            self.process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            raise LaunchError(self.command, str(e)) from e

        self.state = ProducerState.RUNNING
        self._stderr_task = asyncio.create_task(self._drain_stderr())
        return self.process

    @property
    def pid(self):
        return self.process.pid if self.process else None

    @property
    def returncode(self):
        return self.process.returncode if self.process else None

    def is_running(self):
        return self.process is not None and self.process.returncode is None

    async def read_chunk(self):
        """Return the next bytes from stdout, or None once the producer closed it."""
        if self.process is None:
            return None
        chunk = await self.process.stdout.read(self.config.chunk_size)
        return chunk or None

    async def _drain_stderr(self):
        # Keeps the producer from stalling on a full stderr pipe
        try:
            while True:
                line = await self.process.stderr.readline()
                if not line:
                    break
                producer_log.debug(line.decode('utf-8', errors='replace').rstrip())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logging.error(f"Error draining producer stderr: {e}")

    async def request_stop(self, timeout=None):
        """Ask the producer to quit, and kill it if it has not done so within `timeout` seconds."""
        if self.process is None:
            return self.state
        if timeout is None:
            timeout = self.config.stop_timeout

        # Nobody reads stdout any more; keep the pipe moving so the
        # producer can flush and exit
        discard_task = asyncio.create_task(self._discard_stdout())
        try:
            stoppable = (ProducerState.RUNNING, ProducerState.STOP_REQUESTED)
            if self.process.returncode is None and self.state in stoppable:
                self.state = ProducerState.STOP_REQUESTED
                await self._send_quit()
                try:
                    await asyncio.wait_for(self.process.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    logging.warning(str(ShutdownTimeout(self.process.pid, timeout)))
                    self._kill()
                    await self.process.wait()
                    self.state = ProducerState.FORCE_KILLED

            if self.state is not ProducerState.FORCE_KILLED:
                await self.process.wait()
                self.state = ProducerState.EXITED
        finally:
            discard_task.cancel()
            try:
                await discard_task
            except asyncio.CancelledError:
                pass

        await self._stop_stderr_task()
        logging.info(f"Producer stopped ({self.state.value}, exit code {self.process.returncode})")
        return self.state

    async def _discard_stdout(self):
        while True:
            chunk = await self.process.stdout.read(65536)
            if not chunk:
                return

    async def _send_quit(self):
        stdin = self.process.stdin
        if stdin is None or stdin.is_closing():
            return
        try:
            stdin.write(b'q')
            await stdin.drain()
            stdin.close()
        except (BrokenPipeError, ConnectionResetError) as e:
            # Already on its way out
            logging.debug(f"Could not send quit to producer: {e}")

    def _kill(self):
        try:
            self.process.kill()
        except ProcessLookupError:
            pass

    async def _stop_stderr_task(self):
        if self._stderr_task is None:
            return
        if not self._stderr_task.done():
            try:
                await asyncio.wait_for(self._stderr_task, timeout=1.0)
            except asyncio.TimeoutError:
                self._stderr_task.cancel()
                try:
                    await self._stderr_task
                except asyncio.CancelledError:
                    pass
        self._stderr_task = None
