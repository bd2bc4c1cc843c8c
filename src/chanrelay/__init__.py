"""chanrelay: supervised ffmpeg channel relays with self-healing relaunch."""

__version__ = "0.1.0"
