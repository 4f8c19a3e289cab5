"""
Remote event logging for the URL shortener.
"""

from .sink import EventSink

__all__ = ["EventSink"]
