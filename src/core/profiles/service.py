# src/core/profiles/service.py
"""
Сервис профилей.
Чтение через кэш (Cache-Aside), запись сначала в БД, затем инвалидация кэша.
"""

from __future__ import annotations

from typing import Optional

from src.common.clock import Clock, SystemClock
from src.common.constants import TypeMsg
from src.common.errors import NotFoundError
from src.common.logger import log_info
from src.core.profiles.models import Profile, ProfileUpdateDTO
from src.core.profiles.repository import ProfileRepository
from src.infra.database import DatabaseManager
from src.infra.redis_client import RedisClient


def profile_cache_key(user_id: str) -> str:
    """Ключ кэша профиля."""
    return f"profile:{user_id}"


class ProfileService:
    """Сервис профилей с кэшированием."""

    def __init__(
        self,
        db: DatabaseManager,
        redis: RedisClient,
        clock: Clock | None = None,
    ) -> None:
        self._repo = ProfileRepository(db)
        self._redis = redis
        self._clock = clock or SystemClock()

    async def find_profile(self, user_id: str) -> Optional[Profile]:
        """
        Профиль или None.
        Использует Cache-Aside паттерн.
        """
        cache_key = profile_cache_key(user_id)

        cached = await self._redis.get_model(cache_key, Profile)
        if cached is not None:
            return cached

        profile = await self._repo.get(user_id)
        if profile is not None:
            from src.config import settings
            await self._redis.set_model(cache_key, profile, ttl=settings.redis_ttl.PROFILE_TTL)

        return profile

    async def get_profile(self, user_id: str) -> Profile:
        """Профиль или NotFoundError."""
        profile = await self.find_profile(user_id)
        if profile is None:
            raise NotFoundError("Профиль не найден", details={"user_id": user_id})
        return profile

    async def upsert_profile(self, user_id: str, dto: ProfileUpdateDTO) -> Profile:
        """Создаёт профиль или меняет переданные поля."""
        now = self._clock.now()
        current = await self._repo.get(user_id) or Profile(user_id=user_id, created_at=now)
        changes = dto.model_dump(exclude_unset=True)
        profile = current.model_copy(update={**changes, "updated_at": now})

        saved = await self._repo.upsert(profile)
        await self._redis.delete(profile_cache_key(user_id))

        await log_info(
            f"Профиль {user_id} обновлён: {', '.join(sorted(changes)) or 'без изменений'}",
            type_msg=TypeMsg.INFO,
        )
        return saved

    async def set_auto_expiry(self, user_id: str, disabled: bool) -> Profile:
        """
        Включает или отключает автоистечение объявлений пользователя.
        Настройка применяется к уже опубликованным объявлениям со следующего чтения.
        """
        saved = await self._repo.set_auto_expiry(user_id, disabled, self._clock.now())
        await self._redis.delete(profile_cache_key(user_id))

        await log_info(
            f"Автоистечение для {user_id} {'отключено' if disabled else 'включено'}",
            type_msg=TypeMsg.INFO,
        )
        return saved
