# src/core/feed/__init__.py
"""
Лента объявлений.
"""

from src.core.feed.models import FeedParams, FeedPage
from src.core.feed.service import FeedAssembler

__all__ = [
    "FeedParams",
    "FeedPage",
    "FeedAssembler",
]
