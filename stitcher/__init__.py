"""Narration-driven vertical video stitcher."""

__version__ = "1.0.0"
