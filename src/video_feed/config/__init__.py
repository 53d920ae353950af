"""Configuration package for Video Feed.

Re-exports the settings entry points so that callers can write::

    from video_feed.config import get_settings
"""

from __future__ import annotations

from video_feed.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
