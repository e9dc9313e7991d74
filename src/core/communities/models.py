# src/core/communities/models.py
"""
Модели сообществ, участников и заявок на создание сообщества.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import Field, field_validator, model_validator

from src.common.constants import RequestStatus, ReviewDecision
from src.common.validators import require_text
from src.shared.models.common import ApiModel

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Community(ApiModel):
    """Сообщество (видимость объявлений ограничена участниками)."""

    id: UUID = Field(default_factory=uuid4, description="Идентификатор сообщества")
    name: str = Field(..., description="Название (уникально без учёта регистра)")
    description: str = Field("", description="Описание")
    created_by: str = Field(..., description="Создатель")
    created_at: datetime = Field(default_factory=_utcnow, description="Дата создания")
    updated_at: datetime = Field(default_factory=_utcnow, description="Дата обновления")


class CommunitySummary(Community):
    """Сообщество в списке со счётчиками."""

    member_count: int = Field(0, ge=0, description="Участников")
    ride_count: int = Field(0, ge=0, description="Неархивных объявлений")
    is_member: bool = Field(False, description="Состоит ли в нём вызывающий")


class Membership(ApiModel):
    """Участие пользователя в сообществе (одна запись на пару)."""

    community_id: UUID
    user_id: str
    joined_at: datetime = Field(default_factory=_utcnow)


class CommunityCreateResult(ApiModel):
    """
    Результат создания сообщества.
    creator_joined=False означает, что сообщество создано, а запись участия создателя нет.
    """

    community: Community
    creator_joined: bool = True


class CommunityRequest(ApiModel):
    """Заявка пользователя на создание сообщества."""

    id: UUID = Field(default_factory=uuid4)
    requested_by: str
    name: str
    description: str
    status: RequestStatus = RequestStatus.PENDING
    rejection_reason: Optional[str] = None
    community_id: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)


# =============================================================================
# DTO
# =============================================================================

class CommunityCreateDTO(ApiModel):
    """DTO создания сообщества и заявки на него."""

    name: str = Field(..., max_length=NAME_MAX_LENGTH)
    description: str = Field(..., max_length=DESCRIPTION_MAX_LENGTH)

    @field_validator("name", "description")
    @classmethod
    def _required(cls, v: Optional[str], info) -> str:
        return require_text(v, info.field_name)


class CommunityUpdateDTO(ApiModel):
    """DTO изменения сообщества создателем."""

    name: Optional[str] = Field(None, max_length=NAME_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return require_text(v, "name")


class CommunityRequestReviewDTO(ApiModel):
    """Решение администратора по заявке."""

    decision: ReviewDecision
    rejection_reason: Optional[str] = None

    @model_validator(mode="after")
    def _strip_reason(self) -> "CommunityRequestReviewDTO":
        if self.rejection_reason is not None:
            self.rejection_reason = self.rejection_reason.strip() or None
        return self
