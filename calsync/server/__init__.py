"""HTTP surface for calsync.

Thin FastAPI wrapper around the sync engine and the push dispatcher.
"""

from .app import create_app

__all__ = ["create_app"]
