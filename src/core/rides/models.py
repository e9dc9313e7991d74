# src/core/rides/models.py
"""
Модели данных объявлений о поездках.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import Field, field_validator

from src.common.constants import GenderPreference, RideType, WEEKDAYS
from src.common.validators import normalize_phone, require_text, validate_ride_time
from src.shared.models.common import ApiModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Ride(ApiModel):
    """
    Объявление о поездке.
    Статус «активно/истекло» не хранится, его вычисляет ExpiryPolicy при чтении.
    """

    id: UUID = Field(default_factory=uuid4, description="Идентификатор объявления")
    user_id: str = Field(..., description="Владелец объявления")
    type: RideType = Field(..., description="Предлагаю поездку или ищу")
    gender_preference: GenderPreference = Field(GenderPreference.BOTH, description="С кем готов ехать")

    start_location: str = Field(..., description="Откуда")
    end_location: str = Field(..., description="Куда")
    ride_date: date = Field(..., description="Дата поездки")
    ride_time: str = Field(..., description="Время поездки HH:MM")

    seats_available: Optional[int] = Field(None, gt=0, description="Свободных мест")
    description: Optional[str] = Field(None, description="Комментарий")
    phone: Optional[str] = Field(None, description="Телефон для связи (92XXXXXXXXXX)")
    community_id: Optional[UUID] = Field(None, description="Сообщество (None = общая лента)")
    recurring_days: list[str] = Field(default_factory=list, description="Дни недели для регулярной поездки")

    expires_at: datetime = Field(..., description="Момент истечения (UTC)")
    is_archived: bool = Field(False, description="Владелец отметил поездку завершённой")

    created_at: datetime = Field(default_factory=_utcnow, description="Дата создания")
    updated_at: datetime = Field(default_factory=_utcnow, description="Дата обновления")


class FeedRide(Ride):
    """Объявление в ленте вместе с данными владельца, нужными для фильтрации."""

    owner_disables_auto_expiry: bool = Field(False, description="Владелец отключил автоистечение")
    owner_nic_verified: bool = Field(False, description="Удостоверение владельца подтверждено")
    owner_name: Optional[str] = Field(None, description="Имя владельца")


# =============================================================================
# DTO
# =============================================================================

class _RideFieldsValidators(ApiModel):
    """Общие проверки полей для создания и редактирования."""

    @field_validator("start_location", "end_location", check_fields=False)
    @classmethod
    def _location_required(cls, v: Optional[str], info) -> Optional[str]:
        if v is None:
            return v
        return require_text(v, info.field_name)

    @field_validator("ride_time", check_fields=False)
    @classmethod
    def _time_format(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_ride_time(v)

    @field_validator("phone", mode="before", check_fields=False)
    @classmethod
    def _phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        return normalize_phone(str(v))

    @field_validator("description", check_fields=False)
    @classmethod
    def _description_length(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        from src.config import settings
        limit = settings.domain.DESCRIPTION_MAX_LENGTH
        if len(v) > limit:
            raise ValueError(f"Комментарий не длиннее {limit} символов")
        return v

    @field_validator("recurring_days", check_fields=False)
    @classmethod
    def _weekdays(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is None:
            return v
        days = [d.strip().lower() for d in v]
        unknown = [d for d in days if d not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Неизвестные дни недели: {', '.join(unknown)}")
        # Порядок дней недели, без повторов
        return [d for d in WEEKDAYS if d in days]


class RideCreateDTO(_RideFieldsValidators):
    """DTO для создания объявления."""

    type: RideType
    gender_preference: GenderPreference = GenderPreference.BOTH
    start_location: str
    end_location: str
    ride_date: date
    ride_time: str
    seats_available: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None
    phone: Optional[str] = None
    community_id: Optional[UUID] = None
    recurring_days: list[str] = Field(default_factory=list)


class RideUpdateDTO(_RideFieldsValidators):
    """DTO для редактирования объявления владельцем. Пустые поля не меняются."""

    type: Optional[RideType] = None
    gender_preference: Optional[GenderPreference] = None
    start_location: Optional[str] = None
    end_location: Optional[str] = None
    ride_date: Optional[date] = None
    ride_time: Optional[str] = None
    seats_available: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None
    phone: Optional[str] = None
    recurring_days: Optional[list[str]] = None
    is_archived: Optional[bool] = None

    def changed_fields(self) -> dict:
        """
        Поля, явно переданные клиентом.
        None допустим только для необязательных полей объявления (очистка значения).
        """
        nullable = {"seats_available", "description", "phone"}
        return {
            k: v
            for k, v in self.model_dump(exclude_unset=True).items()
            if v is not None or k in nullable
        }


class RideCreateResult(ApiModel):
    """Результат создания объявления."""

    ride: Ride
    has_expired_ride: bool = False


class RideCheckResult(ApiModel):
    """Текущее и последнее истёкшее объявление пользователя."""

    has_active_ride: bool = False
    active_ride: Optional[Ride] = None
    has_expired_ride: bool = False
    expired_ride: Optional[Ride] = None
