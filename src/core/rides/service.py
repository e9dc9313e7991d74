# src/core/rides/service.py
"""
Сервис объявлений о поездках.
Создание, редактирование, архивирование и проверка текущего объявления пользователя.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from src.common.clock import Clock, SystemClock
from src.common.constants import TypeMsg
from src.common.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from src.common.logger import log_error, log_info
from src.core.communities.repository import CommunityRepository
from src.core.rides.expiry import compute_expires_at, today_in
from src.core.rides.models import (
    FeedRide,
    Ride,
    RideCheckResult,
    RideCreateDTO,
    RideCreateResult,
    RideUpdateDTO,
)
from src.core.rides.repository import RideRepository
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes

# Поля, изменение которых не пересчитывает границу истечения
_LIFECYCLE_ONLY_FIELDS = {"is_archived"}


class RideService:
    """
    Сервис объявлений.
    Одно активное объявление на пользователя проверяется при создании;
    хранилище этого не гарантирует, поэтому выборки используют детерминированный порядок.
    """

    def __init__(
        self,
        db: DatabaseManager,
        event_bus: EventBus,
        clock: Clock | None = None,
        timezone_name: str | None = None,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            event_bus: Шина событий
            clock: Источник времени (по умолчанию системный)
            timezone_name: Часовой пояс границы суток (по умолчанию из конфига)
        """
        self._ride_repo = RideRepository(db)
        self._community_repo = CommunityRepository(db)
        self._event_bus = event_bus
        self._clock = clock or SystemClock()
        if timezone_name is None:
            from src.config import settings
            timezone_name = settings.domain.TIMEZONE
        self._tz = timezone_name

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_ride(self, ride_id: UUID) -> FeedRide:
        """Возвращает объявление или бросает NotFoundError."""
        ride = await self._ride_repo.get_by_id(ride_id)
        if ride is None:
            raise NotFoundError("Объявление не найдено", details={"ride_id": str(ride_id)})
        return ride

    async def check_rides(self, user_id: str) -> RideCheckResult:
        """Текущее активное и последнее прошлое объявление пользователя."""
        now = self._clock.now()
        active = await self._ride_repo.find_active_for_user(user_id, now)
        expired = await self._ride_repo.find_most_recent_expired(user_id, now)
        return RideCheckResult(
            has_active_ride=active is not None,
            active_ride=active,
            has_expired_ride=expired is not None,
            expired_ride=expired,
        )

    async def list_user_rides(self, user_id: str) -> list[FeedRide]:
        """Все объявления пользователя («Мои поездки»)."""
        return await self._ride_repo.list_for_user(user_id)

    # =========================================================================
    # СОЗДАНИЕ
    # =========================================================================

    async def create_ride(self, user_id: str, dto: RideCreateDTO) -> RideCreateResult:
        """
        Публикует объявление.

        Raises:
            ValidationError: дата поездки в прошлом
            ConflictError: у пользователя уже есть активное объявление
            NotFoundError: сообщество не существует
            UnauthorizedError: пользователь не состоит в сообществе
        """
        now = self._clock.now()
        self._ensure_not_past(dto.ride_date, now)

        active = await self._ride_repo.find_active_for_user(user_id, now)
        if active is not None:
            raise ConflictError(
                "У вас уже есть активное объявление",
                details={"active_ride_id": str(active.id)},
            )

        if dto.community_id is not None:
            await self._ensure_member(user_id, dto.community_id)

        ride = Ride(
            user_id=user_id,
            type=dto.type,
            gender_preference=dto.gender_preference,
            start_location=dto.start_location,
            end_location=dto.end_location,
            ride_date=dto.ride_date,
            ride_time=dto.ride_time,
            seats_available=dto.seats_available,
            description=dto.description,
            phone=dto.phone,
            community_id=dto.community_id,
            recurring_days=dto.recurring_days,
            expires_at=compute_expires_at(dto.ride_date, self._tz),
            is_archived=False,
            created_at=now,
            updated_at=now,
        )
        saved = await self._ride_repo.create(ride)
        expired = await self._ride_repo.find_most_recent_expired(user_id, now)

        await log_info(
            f"Объявление {saved.id} ({saved.type.value}) опубликовано пользователем {user_id}",
            type_msg=TypeMsg.INFO,
        )
        await self._publish(EventTypes.RIDE_CREATED, saved, community_id=saved.community_id)

        return RideCreateResult(ride=saved, has_expired_ride=expired is not None)

    # =========================================================================
    # ИЗМЕНЕНИЕ
    # =========================================================================

    async def update_ride(self, user_id: str, ride_id: UUID, dto: RideUpdateDTO) -> Ride:
        """
        Редактирует объявление владельца.
        Изменение любых полей, кроме is_archived, пересчитывает expires_at от даты поездки.

        Raises:
            NotFoundError: объявления нет
            UnauthorizedError: объявление принадлежит другому пользователю
            ValidationError: новая дата поездки в прошлом
        """
        ride = await self._get_owned(user_id, ride_id)
        changes = dto.changed_fields()
        if not changes:
            return ride

        now = self._clock.now()
        if "ride_date" in changes:
            self._ensure_not_past(changes["ride_date"], now)

        updated = ride.model_copy(update=changes)
        if set(changes) - _LIFECYCLE_ONLY_FIELDS:
            updated = updated.model_copy(update={"expires_at": compute_expires_at(updated.ride_date, self._tz)})

        saved = await self._ride_repo.update(Ride.model_validate(updated.model_dump()))
        if saved is None:
            raise NotFoundError("Объявление не найдено", details={"ride_id": str(ride_id)})

        archived_now = saved.is_archived and not ride.is_archived
        await log_info(
            f"Объявление {ride_id} {'архивировано' if archived_now else 'обновлено'} владельцем {user_id}",
            type_msg=TypeMsg.INFO,
        )
        await self._publish(
            EventTypes.RIDE_ARCHIVED if archived_now else EventTypes.RIDE_UPDATED,
            saved,
            fields=sorted(changes),
        )
        return saved

    async def archive_ride(self, user_id: str, ride_id: UUID) -> Ride:
        """Отмечает поездку завершённой."""
        return await self.update_ride(user_id, ride_id, RideUpdateDTO(is_archived=True))

    async def delete_ride(self, user_id: str, ride_id: UUID) -> None:
        """Удаляет объявление по запросу владельца."""
        ride = await self._get_owned(user_id, ride_id)
        deleted = await self._ride_repo.delete(ride.id, user_id)
        if not deleted:
            raise NotFoundError("Объявление не найдено", details={"ride_id": str(ride_id)})

        await log_info(f"Объявление {ride_id} удалено владельцем {user_id}", type_msg=TypeMsg.INFO)
        await self._publish(EventTypes.RIDE_DELETED, ride)

    # =========================================================================
    # ВСПОМОГАТЕЛЬНЫЕ
    # =========================================================================

    async def _get_owned(self, user_id: str, ride_id: UUID) -> FeedRide:
        """Сначала проверяется существование, затем владение."""
        ride = await self.get_ride(ride_id)
        if ride.user_id != user_id:
            raise UnauthorizedError(
                "Изменять объявление может только его автор",
                details={"ride_id": str(ride_id)},
            )
        return ride

    def _ensure_not_past(self, ride_date: date, now: datetime) -> None:
        if ride_date < today_in(self._tz, now):
            raise ValidationError(
                "Дата поездки должна быть сегодня или позже",
                details={"ride_date": ride_date.isoformat()},
            )

    async def _ensure_member(self, user_id: str, community_id: UUID) -> None:
        community = await self._community_repo.get_by_id(community_id)
        if community is None:
            raise NotFoundError("Сообщество не найдено", details={"community_id": str(community_id)})
        if await self._community_repo.find_membership(community_id, user_id) is None:
            raise UnauthorizedError(
                "Публиковать в сообществе могут только его участники",
                details={"community_id": str(community_id)},
            )

    async def _publish(self, event_type: str, ride: Ride, **extra: Any) -> None:
        """Публикует событие; сбой шины не отменяет операцию."""
        payload: dict[str, Any] = {
            "ride_id": str(ride.id),
            "user_id": ride.user_id,
            "type": ride.type.value,
            **{k: (str(v) if isinstance(v, UUID) else v) for k, v in extra.items()},
        }
        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type} для объявления {ride.id}: {e}")
