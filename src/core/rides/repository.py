# src/core/rides/repository.py
"""
Репозиторий объявлений о поездках.
Владелец ресурса и его настройка автоистечения читаются вместе с объявлением
одним запросом (LEFT JOIN profiles), поэтому политика истечения всегда видит
актуальное значение настройки.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from src.common.constants import TypeMsg
from src.common.errors import InternalError
from src.common.logger import log_error, log_info
from src.core.rides.expiry import is_active, is_past_listing
from src.core.rides.models import FeedRide, Ride
from src.core.rides.query import RIDES_WITH_OWNER, RideFilter, build_search_query, matches, sort_rides
from src.infra.database import DatabaseManager, affected_rows


RIDE_FIELDS = (
    "id, user_id, type, gender_preference, start_location, end_location, ride_date, ride_time, "
    "seats_available, description, phone, community_id, recurring_days, expires_at, is_archived, "
    "created_at, updated_at"
)


def row_to_feed_ride(row: Any) -> FeedRide:
    """Преобразует строку запроса с данными владельца в FeedRide."""
    data = dict(row)
    data["recurring_days"] = list(data.get("recurring_days") or [])
    return FeedRide.model_validate(data)


def row_to_ride(row: Any) -> Ride:
    """Преобразует строку таблицы rides в Ride."""
    data = dict(row)
    data["recurring_days"] = list(data.get("recurring_days") or [])
    return Ride.model_validate(data)


class RideRepository:
    """Репозиторий объявлений."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def create(self, ride: Ride) -> Ride:
        """
        Сохраняет новое объявление.

        Raises:
            InternalError: ошибка хранилища
        """
        try:
            row = await self._db.fetchrow(
                f"""
                INSERT INTO rides ({RIDE_FIELDS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17)
                RETURNING {RIDE_FIELDS}
                """,
                ride.id,
                ride.user_id,
                ride.type.value,
                ride.gender_preference.value,
                ride.start_location,
                ride.end_location,
                ride.ride_date,
                ride.ride_time,
                ride.seats_available,
                ride.description,
                ride.phone,
                ride.community_id,
                ride.recurring_days,
                ride.expires_at,
                ride.is_archived,
                ride.created_at,
                ride.updated_at,
            )
        except Exception as e:
            await log_error(f"Ошибка создания объявления пользователя {ride.user_id}: {e}")
            raise InternalError("Не удалось сохранить объявление") from e

        await log_info(f"Объявление {ride.id} создано пользователем {ride.user_id}", type_msg=TypeMsg.DEBUG)
        return row_to_ride(row) if row is not None else ride

    async def get_by_id(self, ride_id: UUID) -> Optional[FeedRide]:
        """Возвращает объявление с данными владельца или None."""
        try:
            row = await self._db.fetchrow(f"{RIDES_WITH_OWNER} WHERE r.id = $1", ride_id)
        except Exception as e:
            await log_error(f"Ошибка получения объявления {ride_id}: {e}")
            raise InternalError("Не удалось загрузить объявление") from e

        return row_to_feed_ride(row) if row is not None else None

    async def list_for_user(self, user_id: str) -> list[FeedRide]:
        """
        Все объявления пользователя, включая истёкшие и архивные.
        Порядок: сначала созданные позже, при равенстве больший id.
        """
        try:
            rows = await self._db.fetch(
                f"{RIDES_WITH_OWNER} WHERE r.user_id = $1 ORDER BY r.created_at DESC, r.id DESC",
                user_id,
            )
        except Exception as e:
            await log_error(f"Ошибка получения объявлений пользователя {user_id}: {e}")
            raise InternalError("Не удалось загрузить объявления пользователя") from e

        return [row_to_feed_ride(row) for row in rows]

    async def find_active_for_user(self, user_id: str, now: datetime) -> Optional[FeedRide]:
        """
        Текущее активное объявление пользователя.
        Если активных несколько, возвращается созданное последним.
        """
        for ride in await self.list_for_user(user_id):
            if is_active(ride, ride.owner_disables_auto_expiry, now):
                return ride
        return None

    async def find_most_recent_expired(self, user_id: str, now: datetime) -> Optional[FeedRide]:
        """
        Последнее созданное прошлое объявление (архивное или истёкшее).
        Никогда не возвращает объявление, активное в момент now.
        """
        for ride in await self.list_for_user(user_id):
            if is_past_listing(ride, ride.owner_disables_auto_expiry, now):
                return ride
        return None

    async def search(self, ride_filter: RideFilter, now: datetime) -> list[FeedRide]:
        """
        Поиск объявлений для ленты.
        Архивные не возвращаются никогда, истёкшие только при отключённом автоистечении владельца.
        """
        query, args = build_search_query(ride_filter, now)
        try:
            rows = await self._db.fetch(query, *args)
        except Exception as e:
            await log_error(f"Ошибка поиска объявлений: {e}")
            raise InternalError("Не удалось выполнить поиск объявлений") from e

        rides = [row_to_feed_ride(row) for row in rows]
        return sort_rides([r for r in rides if matches(r, ride_filter, now)], ride_filter.sort_by)

    async def update(self, ride: Ride) -> Optional[Ride]:
        """
        Сохраняет изменённое объявление.
        Условие user_id в WHERE не даёт перезаписать чужое объявление.

        Returns:
            Обновлённое объявление или None, если строка не найдена
        """
        try:
            row = await self._db.fetchrow(
                f"""
                UPDATE rides
                SET type = $3, gender_preference = $4, start_location = $5, end_location = $6,
                    ride_date = $7, ride_time = $8, seats_available = $9, description = $10,
                    phone = $11, recurring_days = $12, expires_at = $13, is_archived = $14,
                    updated_at = $15
                WHERE id = $1 AND user_id = $2
                RETURNING {RIDE_FIELDS}
                """,
                ride.id,
                ride.user_id,
                ride.type.value,
                ride.gender_preference.value,
                ride.start_location,
                ride.end_location,
                ride.ride_date,
                ride.ride_time,
                ride.seats_available,
                ride.description,
                ride.phone,
                ride.recurring_days,
                ride.expires_at,
                ride.is_archived,
                datetime.now(timezone.utc),
            )
        except Exception as e:
            await log_error(f"Ошибка обновления объявления {ride.id}: {e}")
            raise InternalError("Не удалось обновить объявление") from e

        return row_to_ride(row) if row is not None else None

    async def delete(self, ride_id: UUID, user_id: str) -> bool:
        """Удаляет объявление владельца. Возвращает True, если строка удалена."""
        try:
            status = await self._db.execute(
                "DELETE FROM rides WHERE id = $1 AND user_id = $2",
                ride_id,
                user_id,
            )
        except Exception as e:
            await log_error(f"Ошибка удаления объявления {ride_id}: {e}")
            raise InternalError("Не удалось удалить объявление") from e

        return affected_rows(status) == 1
