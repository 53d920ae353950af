"""Video Feed: topic-driven YouTube polling, storage and search service."""

__version__ = "0.1.0"
