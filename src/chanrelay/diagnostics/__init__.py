"""
Diagnostics captured into channel logs around relay launches.
"""
