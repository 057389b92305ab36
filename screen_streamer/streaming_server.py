"""
MJPEG Broadcast Server

Serves the latest captured frame to any number of HTTP clients as a
multipart/x-mixed-replace stream, the format browsers render inside a plain
<img> tag.

Routes:
- /        : a minimal page embedding the stream
- /stream  : the MJPEG stream itself
- /status  : JSON status of the stream and its subscribers

Every client gets its own loop that paces itself (66 ms by default, about
15 fps) and sends whatever frame is latest at each tick. A slow or stalled
client only delays itself; the capture side never waits on a client.
"""

import asyncio
import logging
import socket
import time

from aiohttp import web

from screen_streamer.errors import ConnectionAborted

BOUNDARY = 'frame'
INDEX_PAGE = "<html><body><img src='/stream'/></body></html>"


class StreamSubscriber:
    def __init__(self, response, peer, pacing_interval):
        self.response = response
        self.peer = peer
        self.pacing_interval = pacing_interval
        self.last_sent = None
        self.frames_sent = 0
        self.connected_at = time.monotonic()

    def describe(self):
        return {
            'peer': self.peer,
            'frames_sent': self.frames_sent,
            'connected_for': round(time.monotonic() - self.connected_at, 3),
        }

    def due(self, now):
        return self.last_sent is None or now - self.last_sent >= self.pacing_interval


class StreamBroadcastServer:
    def __init__(self, store, stop_event, host='0.0.0.0', port=5000, pacing_interval=0.066, poll_interval=0.01):
        self.store = store
        self.stop_event = stop_event
        self.host = host
        self.port = port
        self.pacing_interval = pacing_interval
        self.poll_interval = poll_interval
        self.subscribers = {}
        self.app = self.create_app()
        self.runner = None

    def create_app(self):
        app = web.Application()
        app.router.add_route('GET', '/', self.index_handler)
        app.router.add_route('GET', '/stream', self.stream_handler)
        app.router.add_route('GET', '/status', self.http_handler)
        return app

    async def index_handler(self, request):
        return web.Response(text=INDEX_PAGE, content_type='text/html')

    async def http_handler(self, request):
        """Handle HTTP requests to get the current status."""
        frame = self.store.snapshot()
        return web.json_response({'status': {
            'streaming': not self.stop_event.is_set(),
            'subscribers': len(self.subscribers),
            'clients': [subscriber.describe() for subscriber in self.subscribers.values()],
            'frames_published': self.store.publish_count,
            'latest_frame_size': len(frame.data) if frame else 0,
            'host': get_server_ip(),
            'port': self.bound_port(),
        }})

    async def stream_handler(self, request):
        response = web.StreamResponse(status=200, headers={
            'Age': '0',
            'Cache-Control': 'no-cache, no-store, must-revalidate, private',
            'Pragma': 'no-cache',
            'Expires': '0',
            'Content-Type': f'multipart/x-mixed-replace; boundary={BOUNDARY}',
        })
        response.force_close()
        await response.prepare(request)

        task = asyncio.current_task()
        subscriber = StreamSubscriber(response, request.remote, self.pacing_interval)
        self.subscribers[task] = subscriber
        logging.info(f"Added streaming client {subscriber.peer}")
        try:
            await self.pace(subscriber)
        except ConnectionAborted as e:
            logging.info(f"Removed streaming client {subscriber.peer}: {e}")
        finally:
            self.subscribers.pop(task, None)

        logging.info(f"Streaming client {subscriber.peer} done after {subscriber.frames_sent} frames")
        return response

    async def pace(self, subscriber):
        loop = asyncio.get_running_loop()
        while not self.stop_event.is_set():
            now = loop.time()
            if not subscriber.due(now):
                await asyncio.sleep(min(self.poll_interval, subscriber.pacing_interval - (now - subscriber.last_sent)))
                continue

            frame = self.store.snapshot()
            if frame is None:
                await asyncio.sleep(self.poll_interval)
                continue

            await self.write_part(subscriber.response, frame.data)
            subscriber.last_sent = loop.time()
            subscriber.frames_sent += 1

    async def write_part(self, response, data):
        try:
            await response.write(f'--{BOUNDARY}\r\n'.encode())
            await response.write(b'Content-Type: image/jpeg\r\n\r\n')
            await response.write(data)
            await response.write(b'\r\n')
        except (ConnectionError, RuntimeError) as e:
            # RuntimeError: aiohttp refuses writes once the transport is closed
            raise ConnectionAborted(str(e) or type(e).__name__) from e

    async def start(self):
        """Start serving on the configured host and port."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logging.info(f"Stream server started on http://{self.host}:{self.bound_port()}/stream")

    def bound_port(self):
        if self.runner is not None and self.runner.addresses:
            return self.runner.addresses[0][1]
        return self.port

    async def close_connections(self, grace=None):
        """
        Wait for client loops to notice the stop event, then cancel the rest.

        The stop event must already be set. Loops that are not blocked exit
        within one poll interval; the default grace leaves the other half of
        the pacing interval for cancelling the ones stuck in a write.
        """
        if grace is None:
            grace = self.pacing_interval / 2
        pending = [task for task in self.subscribers if not task.done()]
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=grace)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.wait(still_running, timeout=1.0)
            logging.info(f"Cancelled {len(still_running)} stalled streaming client(s)")

    async def stop(self):
        await self.close_connections()
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
        logging.info("Stream server stopped")


def get_server_ip():
    """LAN address of the interface that routes outward, or loopback if there is none."""
    # UDP connect only selects a route; nothing is sent
    route_socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        route_socket.connect(("10.255.255.255", 1))
        return route_socket.getsockname()[0]
    except OSError as e:
        logging.warning(f"Could not determine LAN address, using loopback: {e}")
        return "127.0.0.1"
    finally:
        route_socket.close()
