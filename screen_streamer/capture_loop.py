"""
Capture loop

Reads the producer's stdout, cuts it into frames and publishes each one to the
shared frame store. When a preview callback is configured, frames are also
decoded for display, one at a time; frames arriving while a decode is still
running are skipped for the preview but are always published.
"""

import asyncio
import logging

from screen_streamer.errors import ProducerExited
from screen_streamer.frame_scanner import FrameBoundaryScanner


class CaptureResult:
    def __init__(self):
        self.frames_published = 0
        self.desync_count = 0
        self.previews_delivered = 0
        self.previews_dropped = 0
        self.exit_reason = None

    def __repr__(self):
        return (f"CaptureResult(frames_published={self.frames_published}, desync_count={self.desync_count}, "
                f"previews_delivered={self.previews_delivered}, previews_dropped={self.previews_dropped}, "
                f"exit_reason={self.exit_reason!r})")


class CaptureLoop:
    def __init__(self, pipe, store, stop_event, max_buffer_size=None, preview_decoder=None, on_preview=None):
        self.pipe = pipe
        self.store = store
        self.stop_event = stop_event
        scanner_args = {} if max_buffer_size is None else {'max_buffer_size': max_buffer_size}
        self.scanner = FrameBoundaryScanner(on_desync=self._on_desync, **scanner_args)
        self.preview_decoder = preview_decoder
        self.on_preview = on_preview
        self.result = CaptureResult()
        self._preview_permit = asyncio.Semaphore(1)
        self._preview_tasks = set()

    @property
    def preview_enabled(self):
        return self.preview_decoder is not None and self.on_preview is not None

    def _on_desync(self, error):
        self.result.desync_count += 1
        logging.warning(f"Stream desynchronized: {error}")

    async def run(self):
        """Run until the producer ends or the stop event is set, then shut the producer down."""
        try:
            while not self.stop_event.is_set():
                chunk = await self.pipe.read_chunk()
                if chunk is None:
                    self.result.exit_reason = ProducerExited(f"Producer exited with code {self.pipe.returncode}")
                    logging.info(str(self.result.exit_reason))
                    break
                for frame in self.scanner.feed(chunk):
                    self.store.publish(frame)
                    self.result.frames_published += 1
                    if self.preview_enabled:
                        await self._offer_preview(frame)
            else:
                self.result.exit_reason = 'stopped'
        except asyncio.CancelledError:
            self.result.exit_reason = 'cancelled'
            raise
        finally:
            await self._finish_previews(cancel=not isinstance(self.result.exit_reason, ProducerExited))
            await self.pipe.request_stop()
        return self.result

    async def _offer_preview(self, frame):
        if self._preview_permit.locked():
            self.result.previews_dropped += 1
            return
        await self._preview_permit.acquire()
        task = asyncio.create_task(self._decode_preview(frame))
        self._preview_tasks.add(task)
        task.add_done_callback(self._preview_tasks.discard)

    async def _decode_preview(self, frame):
        loop = asyncio.get_running_loop()
        try:
            image = await loop.run_in_executor(None, self.preview_decoder.decode, frame.data)
            if image is not None and not self.stop_event.is_set():
                self.on_preview(image)
                self.result.previews_delivered += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logging.error(f"Preview decode failed for frame {frame.sequence}: {e}")
        finally:
            self._preview_permit.release()

    async def _finish_previews(self, cancel):
        # A decode already in flight when the producer ends is still delivered
        if cancel:
            for task in list(self._preview_tasks):
                task.cancel()
        if self._preview_tasks:
            await asyncio.gather(*self._preview_tasks, return_exceptions=True)
