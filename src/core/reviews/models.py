# src/core/reviews/models.py
"""
Модели отзывов о поездках.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import Field, field_validator

from src.shared.models.common import ApiModel

RATING_MIN = 1
RATING_MAX = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_comment(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    from src.config import settings
    v = v.strip()
    limit = settings.domain.REVIEW_COMMENT_MAX_LENGTH
    if len(v) > limit:
        raise ValueError(f"Отзыв не длиннее {limit} символов")
    return v or None


class Review(ApiModel):
    """Отзыв попутчика о владельце объявления."""

    id: UUID = Field(default_factory=uuid4, description="Идентификатор отзыва")
    ride_id: UUID = Field(..., description="Объявление")
    reviewer_id: str = Field(..., description="Автор отзыва")
    driver_id: str = Field(..., description="Владелец объявления")
    rating: int = Field(..., ge=RATING_MIN, le=RATING_MAX, description="Оценка 1-5")
    comment: Optional[str] = Field(None, description="Комментарий")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ReviewCreateDTO(ApiModel):
    """DTO создания отзыва."""

    ride_id: UUID
    rating: int = Field(..., ge=RATING_MIN, le=RATING_MAX)
    comment: Optional[str] = None

    @field_validator("comment")
    @classmethod
    def _comment(cls, v: Optional[str]) -> Optional[str]:
        return _check_comment(v)


class ReviewUpdateDTO(ApiModel):
    """DTO изменения отзыва автором."""

    rating: Optional[int] = Field(None, ge=RATING_MIN, le=RATING_MAX)
    comment: Optional[str] = None

    @field_validator("comment")
    @classmethod
    def _comment(cls, v: Optional[str]) -> Optional[str]:
        return _check_comment(v)
