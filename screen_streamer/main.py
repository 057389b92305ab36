"""
Screen Streamer

Captures the desktop with ffmpeg and serves it as an MJPEG stream that any
browser can open at http://<host>:<port>/ . Stop with Ctrl-C.
"""

import asyncio
import logging
import signal
import sys

from screen_streamer.config_manager import ConfigManager
from screen_streamer.session import StreamingSession
from screen_streamer.settings import SessionConfig


def setup_logging(log_file=None, debug=False):
    level = logging.DEBUG if debug else logging.INFO
    log_format = '%(asctime)s %(levelname)s %(name)s: %(message)s'
    if log_file:
        logging.basicConfig(filename=log_file, level=level, format=log_format)
    else:
        logging.basicConfig(level=level, format=log_format)


async def run(config):
    streaming = StreamingSession()
    result = await streaming.start_session(config)
    if not result:
        return 1

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except (NotImplementedError, RuntimeError):
            # Windows: Ctrl-C arrives as KeyboardInterrupt instead
            pass

    capture_ended = asyncio.create_task(streaming.wait_capture())
    stop_wait = asyncio.create_task(stop_requested.wait())
    try:
        await asyncio.wait({capture_ended, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
        if capture_ended.done():
            logging.warning("Capture ended, shutting down")
    finally:
        stop_wait.cancel()
        await streaming.stop_session()
    return 0


def main(argv=None):
    args = ConfigManager.parse_arguments(argv)
    setup_logging(args.log_file, args.debug)

    config_manager = ConfigManager(config_file=args.config_file, config_dir=args.config_dir)
    if args.port is not None:
        config_manager.set('stream_server', 'port', args.port)
    config = SessionConfig.from_config_manager(config_manager)

    try:
        return asyncio.run(run(config))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 0
    except Exception as e:
        logging.error(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
