"""Tests for SubprocessPipe against a synthetic producer."""

import logging

import pytest

from screen_streamer.errors import LaunchError
from screen_streamer.settings import ProducerConfig
from screen_streamer.subprocess_pipe import ProducerState, SubprocessPipe
from stream_helpers import make_frame


async def read_all(pipe):
    data = b''
    while True:
        chunk = await pipe.read_chunk()
        if chunk is None:
            return data
        data += chunk


class TestLaunch:
    @pytest.mark.asyncio
    async def test_missing_executable_raises_launch_error(self, tmp_path):
        pipe = SubprocessPipe(ProducerConfig(command=[str(tmp_path / 'no-such-grabber')]))

        with pytest.raises(LaunchError) as excinfo:
            await pipe.start()

        assert excinfo.value.command == [str(tmp_path / 'no-such-grabber')]
        assert pipe.state is ProducerState.IDLE
        assert not pipe.is_running()

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, producer_command):
        pipe = SubprocessPipe(ProducerConfig(command=producer_command(b'')))
        await pipe.start()
        try:
            with pytest.raises(RuntimeError):
                await pipe.start()
        finally:
            await pipe.request_stop()


class TestReading:
    @pytest.mark.asyncio
    async def test_reads_stdout_until_end_of_stream(self, producer_command):
        data = make_frame(100, 1) + make_frame(150, 2)
        pipe = SubprocessPipe(ProducerConfig(command=producer_command(data, splits=[40, 200], mode='exit')))
        await pipe.start()

        received = await read_all(pipe)
        state = await pipe.request_stop()

        assert received == data
        assert state is ProducerState.EXITED
        assert pipe.returncode == 0

    @pytest.mark.asyncio
    async def test_chunk_size_bounds_reads(self, producer_command):
        data = make_frame(1000)
        pipe = SubprocessPipe(ProducerConfig(command=producer_command(data, mode='exit'), chunk_size=64))
        await pipe.start()

        sizes = []
        while True:
            chunk = await pipe.read_chunk()
            if chunk is None:
                break
            sizes.append(len(chunk))
        await pipe.request_stop()

        assert sum(sizes) == 1000
        assert max(sizes) <= 64

    @pytest.mark.asyncio
    async def test_read_before_start_is_end_of_stream(self):
        pipe = SubprocessPipe(ProducerConfig(command=['unused']))

        assert await pipe.read_chunk() is None


class TestShutdown:
    @pytest.mark.asyncio
    async def test_graceful_quit(self, producer_command):
        pipe = SubprocessPipe(ProducerConfig(command=producer_command(make_frame(100))))
        await pipe.start()

        state = await pipe.request_stop(timeout=5)

        assert state is ProducerState.EXITED
        assert pipe.returncode == 0
        assert not pipe.is_running()

    @pytest.mark.asyncio
    async def test_unresponsive_producer_is_killed(self, producer_command, caplog):
        pipe = SubprocessPipe(ProducerConfig(command=producer_command(make_frame(100), mode='ignore')))
        await pipe.start()

        state = await pipe.request_stop(timeout=0.5)

        assert state is ProducerState.FORCE_KILLED
        assert pipe.returncode is not None
        assert 'did not exit within 0.5s' in caplog.text

    @pytest.mark.asyncio
    async def test_stop_after_exit(self, producer_command):
        pipe = SubprocessPipe(ProducerConfig(command=producer_command(b'', mode='exit')))
        await pipe.start()
        await read_all(pipe)

        assert await pipe.request_stop() is ProducerState.EXITED
        # Stopping twice is harmless
        assert await pipe.request_stop() is ProducerState.EXITED

    @pytest.mark.asyncio
    async def test_stop_with_unread_output(self, producer_command):
        # Far more than a pipe buffer, none of it read by us
        data = make_frame(2 * 1024 * 1024)
        pipe = SubprocessPipe(ProducerConfig(command=producer_command(data)))
        await pipe.start()

        state = await pipe.request_stop(timeout=5)

        assert state is ProducerState.EXITED

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        pipe = SubprocessPipe(ProducerConfig(command=['unused']))

        assert await pipe.request_stop() is ProducerState.IDLE


class TestStderr:
    @pytest.mark.asyncio
    async def test_stderr_forwarded_to_producer_logger(self, producer_command, caplog):
        caplog.set_level(logging.DEBUG, logger='screen_streamer.producer')
        pipe = SubprocessPipe(ProducerConfig(command=producer_command(make_frame(50))))
        await pipe.start()

        await pipe.request_stop(timeout=5)

        messages = [r.getMessage() for r in caplog.records if r.name == 'screen_streamer.producer']
        assert 'synthetic producer started' in messages
        assert 'synthetic producer quitting' in messages
