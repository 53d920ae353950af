"""Background ingestion of YouTube topic searches."""

from video_feed.ingestion.poller import CycleResult, IngestionLoop, LoopState

__all__ = ["CycleResult", "IngestionLoop", "LoopState"]
