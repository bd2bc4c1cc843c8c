"""
Operator CLI for chanrelay.
"""
