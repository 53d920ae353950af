"""ORM models.  Importing this package registers every table on ``Base.metadata``."""

from video_feed.core.models.base import Base, TimestampMixin
from video_feed.core.models.video import Video

__all__ = ["Base", "TimestampMixin", "Video"]
