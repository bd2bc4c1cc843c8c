"""
Use cases orchestrating the runtime and streaming layers.
"""
