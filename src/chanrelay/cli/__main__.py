#!/usr/bin/env python3
"""
CLI entry point for chanrelay.cli module.

This allows running: python -m chanrelay.cli
"""

from .main import cli

if __name__ == "__main__":
    cli()
