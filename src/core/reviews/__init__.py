# src/core/reviews/__init__.py
"""
Отзывы о поездках.
"""

from src.core.reviews.models import Review, ReviewCreateDTO, ReviewUpdateDTO
from src.core.reviews.repository import ReviewRepository
from src.core.reviews.service import ReviewService

__all__ = [
    "Review",
    "ReviewCreateDTO",
    "ReviewUpdateDTO",
    "ReviewRepository",
    "ReviewService",
]
