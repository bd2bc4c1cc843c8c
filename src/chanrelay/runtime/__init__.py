"""
Runtime layer - channel supervision, process observation and channel logs.
"""
