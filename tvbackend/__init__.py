"""Mock backend for a video/TV streaming client."""

__version__ = "1.0.0"
