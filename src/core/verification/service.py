# src/core/verification/service.py
"""
Сервис проверки удостоверения личности (NIC).
Переходы выполняет state_machine, запись идёт сравнением с ожидаемым состоянием.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from src.common.clock import Clock, SystemClock
from src.common.constants import TypeMsg, VerificationStatus
from src.common.errors import ConflictError, NotFoundError
from src.common.logger import log_error, log_info, log_warning
from src.core.profiles.models import NicVerification, Profile
from src.core.profiles.repository import ProfileRepository
from src.core.profiles.service import profile_cache_key
from src.core.verification import state_machine
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes
from src.infra.redis_client import RedisClient

# Сколько раз перечитывать профиль, если состояние изменили параллельно
MAX_WRITE_ATTEMPTS = 3

Transition = Callable[[NicVerification], NicVerification]


class VerificationService:
    """
    Проверка удостоверения.
    Отправка от пользователя, одобрение и отклонение от администратора
    (права администратора проверяются на границе API).
    """

    def __init__(
        self,
        db: DatabaseManager,
        redis: RedisClient,
        event_bus: EventBus,
        clock: Clock | None = None,
    ) -> None:
        self._repo = ProfileRepository(db)
        self._redis = redis
        self._event_bus = event_bus
        self._clock = clock or SystemClock()

    # =========================================================================
    # ПЕРЕХОДЫ
    # =========================================================================

    async def submit(self, user_id: str, front_url: str, back_url: str) -> Profile:
        """
        Отправляет фото на проверку. Профиль создаётся, если его ещё нет.

        Raises:
            ValidationError: не переданы обе ссылки
            AlreadyVerifiedError: удостоверение уже подтверждено
        """
        now = self._clock.now()
        profile = await self._repo.ensure(user_id, now)
        saved = await self._apply(
            profile,
            lambda record: state_machine.submit(record, front_url, back_url, now),
        )

        await log_info(f"Удостоверение {user_id} отправлено на проверку", type_msg=TypeMsg.INFO)
        await self._publish(EventTypes.VERIFICATION_SUBMITTED, {"user_id": user_id})
        return saved

    async def approve(self, user_id: str, nic_number: str) -> Profile:
        """
        Подтверждает удостоверение.

        Raises:
            NotFoundError: профиля нет
            InvalidStateTransitionError: удостоверение не ожидает проверки
            ValidationError: некорректный номер удостоверения
            ConflictError: фото заменены во время проверки
        """
        now = self._clock.now()
        profile = await self._load(user_id)
        saved = await self._apply(
            profile,
            lambda record: state_machine.approve(record, nic_number, now),
            same_submission=True,
        )

        await log_info(f"Удостоверение {user_id} подтверждено", type_msg=TypeMsg.INFO)
        await self._publish(EventTypes.VERIFICATION_APPROVED, {"user_id": user_id})
        return saved

    async def reject(self, user_id: str, reason: Optional[str] = None) -> Profile:
        """
        Отклоняет удостоверение.

        Raises:
            NotFoundError: профиля нет
            InvalidStateTransitionError: удостоверение не ожидает проверки
            ConflictError: фото заменены во время проверки
        """
        now = self._clock.now()
        profile = await self._load(user_id)
        saved = await self._apply(
            profile,
            lambda record: state_machine.reject(record, reason, now),
            same_submission=True,
        )

        await log_info(
            f"Удостоверение {user_id} отклонено: {saved.verification.rejection_reason}",
            type_msg=TypeMsg.INFO,
        )
        await self._publish(
            EventTypes.VERIFICATION_REJECTED,
            {"user_id": user_id, "reason": saved.verification.rejection_reason},
        )
        return saved

    async def list_pending(self) -> list[Profile]:
        """Профили, ожидающие решения администратора."""
        return await self._repo.list_by_status(VerificationStatus.PENDING)

    # =========================================================================
    # ВСПОМОГАТЕЛЬНЫЕ
    # =========================================================================

    async def _load(self, user_id: str) -> Profile:
        profile = await self._repo.get(user_id)
        if profile is None:
            raise NotFoundError("Профиль не найден", details={"user_id": user_id})
        return profile

    async def _apply(self, profile: Profile, transition: Transition, *, same_submission: bool = False) -> Profile:
        """
        Применяет переход и сохраняет его, если запись не изменилась с момента чтения.
        При проигранной гонке профиль перечитывается и переход проверяется заново.

        Args:
            same_submission: Решение относится к конкретной отправке фото;
                если пользователь успел прислать новые, решение не применяется

        Raises:
            ConflictError: запись меняется параллельно или фото заменены во время проверки
        """
        user_id = profile.user_id
        submitted_at = profile.verification.submitted_at
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            expected = profile.verification
            updated = transition(expected)
            saved = await self._repo.save_verification(user_id, expected, updated, self._clock.now())
            if saved is not None:
                await self._redis.delete(profile_cache_key(user_id))
                return saved

            await log_warning(
                f"Состояние проверки {user_id} изменилось параллельно (попытка {attempt}), перечитываем"
            )
            profile = await self._load(user_id)
            current = profile.verification
            if (
                same_submission
                and current.status == VerificationStatus.PENDING
                and current.submitted_at != submitted_at
            ):
                raise ConflictError(
                    "Пользователь прислал новые фото во время проверки, откройте заявку заново",
                    details={"user_id": user_id},
                )

        raise ConflictError(
            "Состояние проверки меняется параллельно, повторите попытку",
            details={"user_id": user_id},
        )

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type}: {e}")
