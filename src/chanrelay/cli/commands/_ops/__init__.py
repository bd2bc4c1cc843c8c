"""
Shared helpers for CLI commands.
"""
