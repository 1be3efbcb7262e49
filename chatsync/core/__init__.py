"""Core module - message merging, session operations, errors and logging setup."""
