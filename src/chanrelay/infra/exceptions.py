"""
Custom exceptions for chanrelay operations.

This module provides custom exception classes for the errors that can
surface while loading channel definitions and launching relays.
"""


class ChanRelayError(Exception):
    """Base exception for all chanrelay errors."""

    pass


class ConfigurationError(ChanRelayError):
    """Raised when settings or supervisor policy are invalid."""

    pass


class ChannelListError(ChanRelayError):
    """Raised when the channel definition file cannot be read."""

    pass


class ChannelNotFoundError(ChanRelayError):
    """Raised when a named channel is not in the channel definitions."""

    def __init__(self, name: str):
        super().__init__(f"Channel '{name}' not found")
        self.name = name


class LaunchError(ChanRelayError):
    """Raised when the transcoding engine process cannot be spawned."""

    pass
