"""YouTube Data API v3 search client."""

from video_feed.youtube.client import SearchClient

__all__ = ["SearchClient"]
