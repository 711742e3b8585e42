"""Takeout Wrapped - listening statistics from Google Takeout watch history."""

__version__ = "0.1.0"
