"""
Shared utilities: logging and application exceptions.
"""
