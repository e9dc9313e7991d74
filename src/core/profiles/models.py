# src/core/profiles/models.py
"""
Модели профиля пользователя и записи о проверке удостоверения (NIC).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import Field, computed_field, field_validator

from src.common.constants import Gender, VerificationStatus
from src.common.validators import normalize_phone
from src.shared.models.common import ApiModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NicVerification(ApiModel):
    """
    Запись о проверке удостоверения.
    front/back заполняются только при одобрении, *_image_url хранят отправку на проверке.
    """

    status: VerificationStatus = Field(VerificationStatus.UNVERIFIED, description="Состояние проверки")
    nic_number: Optional[str] = Field(None, description="Номер удостоверения (задаёт администратор)")
    front: Optional[str] = Field(None, description="Подтверждённое фото лицевой стороны")
    back: Optional[str] = Field(None, description="Подтверждённое фото обратной стороны")
    front_image_url: Optional[str] = Field(None, description="Фото лицевой стороны на проверке")
    back_image_url: Optional[str] = Field(None, description="Фото обратной стороны на проверке")
    rejection_reason: Optional[str] = Field(None, description="Причина отклонения")
    rejected_at: Optional[datetime] = Field(None, description="Когда отклонено")
    submitted_at: Optional[datetime] = Field(None, description="Когда отправлено")
    verified_at: Optional[datetime] = Field(None, description="Когда подтверждено")

    @computed_field
    @property
    def nic_verified(self) -> bool:
        """Удостоверение подтверждено."""
        return self.status == VerificationStatus.VERIFIED


class Profile(ApiModel):
    """Профиль пользователя."""

    user_id: str = Field(..., description="Идентификатор пользователя от провайдера сессий")
    full_name: Optional[str] = Field(None, description="Имя")
    phone: Optional[str] = Field(None, description="Телефон 92XXXXXXXXXX")
    avatar_url: Optional[str] = Field(None, description="Ссылка на аватар")
    gender: Optional[Gender] = Field(None, description="Пол")
    disable_auto_expiry: bool = Field(False, description="Не считать объявления истёкшими по времени")
    verification: NicVerification = Field(default_factory=NicVerification)

    created_at: datetime = Field(default_factory=_utcnow, description="Дата создания")
    updated_at: datetime = Field(default_factory=_utcnow, description="Дата обновления")

    @computed_field
    @property
    def profile_completed(self) -> bool:
        """Заполнены все поля, нужные для публикации."""
        return all((self.full_name, self.phone, self.avatar_url, self.gender))

    @property
    def nic_verified(self) -> bool:
        return self.verification.nic_verified


# Соответствие полей NicVerification колонкам таблицы profiles
NIC_COLUMNS: dict[str, str] = {
    "status": "nic_status",
    "nic_number": "nic_number",
    "front": "nic_front",
    "back": "nic_back",
    "front_image_url": "nic_front_image_url",
    "back_image_url": "nic_back_image_url",
    "rejection_reason": "nic_rejection_reason",
    "rejected_at": "nic_rejected_at",
    "submitted_at": "nic_submitted_at",
    "verified_at": "nic_verified_at",
}


def profile_from_row(row: Any) -> Profile:
    """Собирает Profile из строки таблицы profiles."""
    data = dict(row)
    verification = {field: data.pop(column, None) for field, column in NIC_COLUMNS.items()}
    if verification["status"] is None:
        verification["status"] = VerificationStatus.UNVERIFIED
    return Profile(verification=NicVerification(**verification), **data)


# =============================================================================
# DTO
# =============================================================================

class ProfileUpdateDTO(ApiModel):
    """Изменение профиля владельцем. Переданные None очищают значение."""

    full_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    gender: Optional[Gender] = None

    @field_validator("full_name", "avatar_url", mode="before")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return str(v).strip() or None

    @field_validator("phone", mode="before")
    @classmethod
    def _phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        return normalize_phone(str(v))


class AutoExpiryDTO(ApiModel):
    """Переключатель автоистечения объявлений."""

    disable_auto_expiry: bool


class NicSubmissionDTO(ApiModel):
    """Ссылки на загруженные фото удостоверения."""

    front_image_url: str = Field("", description="Лицевая сторона")
    back_image_url: str = Field("", description="Обратная сторона")


class NicApprovalDTO(ApiModel):
    """Решение администратора: одобрить с номером удостоверения."""

    nic_number: str = ""


class NicRejectionDTO(ApiModel):
    """Решение администратора: отклонить с причиной."""

    reason: Optional[str] = None
