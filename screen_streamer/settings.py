"""
Typed settings for a capture session, built from a ConfigManager.
"""

import shlex
import sys

from screen_streamer.frame_scanner import DEFAULT_MAX_BUFFER_SIZE


class ProducerConfig:
    def __init__(self, executable='ffmpeg', frame_rate=15, quality=5, scale_width=0,
                 display=':0.0', extra_args=None, chunk_size=4096, stop_timeout=2.0,
                 command=None):
        self.executable = executable
        self.frame_rate = frame_rate
        self.quality = quality
        self.scale_width = scale_width
        self.display = display
        self.extra_args = list(extra_args or [])
        self.chunk_size = chunk_size
        self.stop_timeout = stop_timeout
        # A full command line replaces the generated ffmpeg invocation
        self.command = list(command) if command else None

    def build_command(self, platform=None):
        if self.command:
            return list(self.command)
        platform = platform or sys.platform

        if platform.startswith('win'):
            source = ['-f', 'gdigrab', '-i', 'desktop']
        else:
            source = ['-f', 'x11grab', '-i', self.display]

        video_filter = f'fps={self.frame_rate}'
        if self.scale_width:
            video_filter += f',scale={self.scale_width}:-1'

        return [
            self.executable,
            '-hide_banner',
            *source,
            '-vf', video_filter,
            '-q:v', str(self.quality),
            *self.extra_args,
            '-f', 'mjpeg',
            '-',
        ]


class ServerConfig:
    def __init__(self, host='0.0.0.0', port=5000, pacing_interval=0.066, poll_interval=0.01):
        self.host = host
        self.port = port
        self.pacing_interval = pacing_interval
        self.poll_interval = poll_interval


class SessionConfig:
    def __init__(self, producer=None, server=None, max_buffer_size=DEFAULT_MAX_BUFFER_SIZE,
                 preview_enabled=False, preview_width=800):
        self.producer = producer or ProducerConfig()
        self.server = server or ServerConfig()
        self.max_buffer_size = max_buffer_size
        self.preview_enabled = preview_enabled
        self.preview_width = preview_width

    @classmethod
    def from_config_manager(cls, config_manager):
        producer = ProducerConfig(
            executable=config_manager.get('producer', 'executable', fallback='ffmpeg'),
            frame_rate=config_manager.getint('producer', 'frame_rate', fallback=15),
            quality=config_manager.getint('producer', 'quality', fallback=5),
            scale_width=config_manager.getint('producer', 'scale_width', fallback=0),
            display=config_manager.get('producer', 'display', fallback=':0.0'),
            extra_args=shlex.split(config_manager.get('producer', 'extra_args', fallback='') or ''),
            chunk_size=config_manager.getint('producer', 'chunk_size', fallback=4096),
            stop_timeout=config_manager.getfloat('producer', 'stop_timeout', fallback=2.0),
        )
        server = ServerConfig(
            host=config_manager.get('stream_server', 'host', fallback='0.0.0.0'),
            port=config_manager.getint('stream_server', 'port', fallback=5000),
            pacing_interval=config_manager.getfloat('stream_server', 'pacing_interval', fallback=0.066),
            poll_interval=config_manager.getfloat('stream_server', 'poll_interval', fallback=0.01),
        )
        return cls(
            producer=producer,
            server=server,
            max_buffer_size=config_manager.getint('scanner', 'max_buffer_size',
                                                  fallback=DEFAULT_MAX_BUFFER_SIZE),
            preview_enabled=config_manager.getboolean('preview', 'enabled', fallback=False),
            preview_width=config_manager.getint('preview', 'width', fallback=800),
        )
