"""calsync - shared calendar event sync and push notifications."""

__version__ = "0.1.0"
