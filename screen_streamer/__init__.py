from screen_streamer.errors import (
    ConnectionAborted,
    LaunchError,
    ProducerExited,
    ShutdownTimeout,
    StreamDesyncError,
    StreamerError,
)
from screen_streamer.frame_scanner import Frame, FrameBoundaryScanner
from screen_streamer.frame_store import FrameStore, LatestFrameStore
from screen_streamer.session import SessionResult, StreamingSession
from screen_streamer.settings import ProducerConfig, ServerConfig, SessionConfig

__version__ = '0.3.0'
