"""Discord bot that tracks go-live streams and posts activity reports."""

__version__ = "1.0.0"
