# src/core/profiles/repository.py
"""
Репозиторий профилей пользователей.
Запись проверки удостоверения меняется только сравнением с ожидаемым nic_status и моментом отправки.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from src.common.constants import TypeMsg, VerificationStatus
from src.common.errors import InternalError
from src.common.logger import log_error, log_info
from src.core.profiles.models import NIC_COLUMNS, NicVerification, Profile, profile_from_row
from src.infra.database import DatabaseManager

PROFILE_FIELDS = (
    "user_id, full_name, phone, avatar_url, gender, disable_auto_expiry, "
    + ", ".join(NIC_COLUMNS.values())
    + ", created_at, updated_at"
)


class ProfileRepository:
    """Репозиторий профилей."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def _fetchrow(self, action: str, query: str, *args: Any) -> Optional[Profile]:
        try:
            row = await self._db.fetchrow(query, *args)
        except Exception as e:
            await log_error(f"Ошибка БД ({action}): {e}")
            raise InternalError("Ошибка хранилища профилей") from e
        return profile_from_row(row) if row is not None else None

    async def get(self, user_id: str) -> Optional[Profile]:
        """Профиль или None."""
        return await self._fetchrow(
            "получение профиля",
            f"SELECT {PROFILE_FIELDS} FROM profiles WHERE user_id = $1",
            user_id,
        )

    async def ensure(self, user_id: str, now: datetime) -> Profile:
        """Возвращает профиль, создавая пустой при отсутствии."""
        profile = await self._fetchrow(
            "создание профиля",
            f"""
            INSERT INTO profiles (user_id, created_at, updated_at)
            VALUES ($1, $2, $2)
            ON CONFLICT (user_id) DO UPDATE SET user_id = EXCLUDED.user_id
            RETURNING {PROFILE_FIELDS}
            """,
            user_id,
            now,
        )
        return profile if profile is not None else Profile(user_id=user_id, created_at=now, updated_at=now)

    async def upsert(self, profile: Profile) -> Profile:
        """Создаёт или обновляет основные поля профиля."""
        saved = await self._fetchrow(
            "сохранение профиля",
            f"""
            INSERT INTO profiles (user_id, full_name, phone, avatar_url, gender, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (user_id) DO UPDATE SET
                full_name = EXCLUDED.full_name,
                phone = EXCLUDED.phone,
                avatar_url = EXCLUDED.avatar_url,
                gender = EXCLUDED.gender,
                updated_at = EXCLUDED.updated_at
            RETURNING {PROFILE_FIELDS}
            """,
            profile.user_id,
            profile.full_name,
            profile.phone,
            profile.avatar_url,
            profile.gender.value if profile.gender else None,
            profile.created_at,
            profile.updated_at,
        )
        await log_info(f"Профиль {profile.user_id} сохранён", type_msg=TypeMsg.DEBUG)
        return saved if saved is not None else profile

    async def set_auto_expiry(self, user_id: str, disabled: bool, now: datetime) -> Profile:
        """Меняет настройку автоистечения, создавая профиль при отсутствии."""
        saved = await self._fetchrow(
            "настройка автоистечения",
            f"""
            INSERT INTO profiles (user_id, disable_auto_expiry, created_at, updated_at)
            VALUES ($1, $2, $3, $3)
            ON CONFLICT (user_id) DO UPDATE SET
                disable_auto_expiry = EXCLUDED.disable_auto_expiry,
                updated_at = EXCLUDED.updated_at
            RETURNING {PROFILE_FIELDS}
            """,
            user_id,
            disabled,
            now,
        )
        if saved is None:
            return Profile(user_id=user_id, disable_auto_expiry=disabled, created_at=now, updated_at=now)
        return saved

    async def save_verification(
        self,
        user_id: str,
        expected: NicVerification,
        verification: NicVerification,
        now: datetime,
    ) -> Optional[Profile]:
        """
        Записывает новое состояние проверки, только если в базе всё ещё лежит expected:
        совпадают nic_status и момент отправки фото (повторная отправка его меняет).

        Returns:
            Обновлённый профиль или None, если состояние успели изменить
        """
        columns = list(NIC_COLUMNS.values())
        assignments = ", ".join(f"{column} = ${i}" for i, column in enumerate(columns, start=5))
        values = [
            verification.status.value if field == "status" else getattr(verification, field)
            for field in NIC_COLUMNS
        ]
        return await self._fetchrow(
            "сохранение проверки удостоверения",
            f"""
            UPDATE profiles
            SET {assignments}, updated_at = $4
            WHERE user_id = $1
              AND nic_status = $2
              AND nic_submitted_at IS NOT DISTINCT FROM $3
            RETURNING {PROFILE_FIELDS}
            """,
            user_id,
            expected.status.value,
            expected.submitted_at,
            now,
            *values,
        )

    async def list_by_status(self, status: VerificationStatus) -> list[Profile]:
        """Профили в заданном состоянии проверки, старые отправки первыми."""
        try:
            rows = await self._db.fetch(
                f"""
                SELECT {PROFILE_FIELDS} FROM profiles
                WHERE nic_status = $1
                ORDER BY nic_submitted_at ASC NULLS LAST, user_id ASC
                """,
                status.value,
            )
        except Exception as e:
            await log_error(f"Ошибка получения профилей со статусом {status.value}: {e}")
            raise InternalError("Ошибка хранилища профилей") from e
        return [profile_from_row(row) for row in rows]
