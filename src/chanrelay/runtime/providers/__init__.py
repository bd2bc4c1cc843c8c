"""
Channel configuration providers.

Provides implementations of ChannelConfigProvider for loading
channel definitions from various sources.
"""

from .file_channel_provider import FileChannelConfigProvider, parse_channel_line

__all__ = [
    "FileChannelConfigProvider",
    "parse_channel_line",
]
