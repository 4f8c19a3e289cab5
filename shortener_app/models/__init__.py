"""
Database models for the durable URL store.

Clicks live in their own table and are loaded with their short URL,
ordered by insertion.
"""

from .url import ShortUrlRecord, ClickRecord

__all__ = ["ShortUrlRecord", "ClickRecord"]
