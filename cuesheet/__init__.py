"""Cue sheet builder: import, validate, and export broadcast cue sheets."""

__version__ = "0.3.0"
