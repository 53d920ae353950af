from video_feed.core.schemas.video import Page, Thumbnails, VideoItem, VideoRead

__all__ = ["Page", "Thumbnails", "VideoItem", "VideoRead"]
