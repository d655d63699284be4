"""Building blocks for SRT live streaming: ring buffer, MPEG-TS parsing,
timed TS file playback, configuration, HLS recording, roles and pid files."""

__version__ = "1.4.0"