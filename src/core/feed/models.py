# src/core/feed/models.py
"""
Параметры и страница ленты объявлений.
"""

from __future__ import annotations

import base64
import binascii
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.common.constants import CommunityScopeKind, FilterType, RideType, SortBy
from src.common.errors import ValidationError
from src.core.rides.models import FeedRide
from src.shared.models.common import ApiModel

_CURSOR_PREFIX = "offset:"


class FeedParams(BaseModel):
    """Параметры запроса ленты."""

    search_text: Optional[str] = Field(None, description="Текст для поиска по маршруту и описанию")
    community_scope: str = Field("public", description="public, all или id сообщества")
    type: Optional[RideType] = Field(None, description="offering или seeking")
    sort_by: SortBy = Field(SortBy.NEWEST, description="newest, oldest или date")
    filter_type: FilterType = Field(FilterType.ALL, description="all, verified, girls_only, boys_only, both")
    limit: Optional[int] = Field(None, ge=1, description="Размер страницы")
    cursor: Optional[str] = Field(None, description="Курсор следующей страницы")

    @field_validator("community_scope", mode="before")
    @classmethod
    def _scope(cls, v: Optional[str]) -> str:
        value = (v or "public").strip().lower()
        if value in (CommunityScopeKind.PUBLIC.value, CommunityScopeKind.ALL.value):
            return value
        try:
            return str(UUID(value))
        except ValueError as e:
            raise ValueError("community_scope: public, all или id сообщества") from e

    @property
    def scope_kind(self) -> CommunityScopeKind:
        if self.community_scope == CommunityScopeKind.PUBLIC.value:
            return CommunityScopeKind.PUBLIC
        if self.community_scope == CommunityScopeKind.ALL.value:
            return CommunityScopeKind.ALL
        return CommunityScopeKind.COMMUNITY

    @property
    def community_id(self) -> Optional[UUID]:
        if self.scope_kind != CommunityScopeKind.COMMUNITY:
            return None
        return UUID(self.community_scope)


class FeedPage(ApiModel):
    """Страница ленты."""

    items: list[FeedRide] = Field(default_factory=list)
    next_cursor: Optional[str] = None


# =============================================================================
# КУРСОР
# =============================================================================

def encode_cursor(offset: int) -> str:
    """Непрозрачный курсор для смещения в упорядоченной выдаче."""
    return base64.urlsafe_b64encode(f"{_CURSOR_PREFIX}{offset}".encode()).decode().rstrip("=")


def decode_cursor(cursor: Optional[str]) -> int:
    """
    Смещение из курсора; пустой курсор означает начало выдачи.

    Raises:
        ValidationError: курсор повреждён
    """
    if not cursor:
        return 0
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        raw = base64.urlsafe_b64decode(padded.encode()).decode()
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise ValidationError("Некорректный курсор", details={"cursor": cursor}) from e

    if not raw.startswith(_CURSOR_PREFIX) or not raw[len(_CURSOR_PREFIX):].isdigit():
        raise ValidationError("Некорректный курсор", details={"cursor": cursor})
    return int(raw[len(_CURSOR_PREFIX):])
