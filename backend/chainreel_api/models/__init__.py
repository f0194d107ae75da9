"""
SQLAlchemy models for ChainReel.

    from chainreel_api.models import GeneratedVideo

All models use UUID strings as primary keys for SQLite compatibility.
"""

from .video import GeneratedVideo

__all__ = [
    "GeneratedVideo",
]
