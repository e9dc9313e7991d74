# src/core/communities/repository.py
"""
Репозитории сообществ, участников и заявок на создание сообщества.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from src.common.constants import RequestStatus, TypeMsg
from src.common.errors import ConflictError, InternalError
from src.common.logger import log_error, log_info
from src.core.communities.models import Community, CommunityRequest, CommunitySummary, Membership
from src.infra.database import DatabaseManager, affected_rows, is_unique_violation


COMMUNITY_FIELDS = "id, name, description, created_by, created_at, updated_at"
REQUEST_FIELDS = (
    "id, requested_by, name, description, status, rejection_reason, community_id, reviewed_at, created_at"
)


class CommunityRepository:
    """Репозиторий сообществ и участия в них."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def _fetchrow(self, action: str, query: str, *args: Any) -> Any:
        try:
            return await self._db.fetchrow(query, *args)
        except Exception as e:
            if is_unique_violation(e):
                raise ConflictError("Сообщество с таким названием уже существует") from e
            await log_error(f"Ошибка БД ({action}): {e}")
            raise InternalError("Ошибка хранилища сообществ") from e

    async def _fetch(self, action: str, query: str, *args: Any) -> list[Any]:
        try:
            return await self._db.fetch(query, *args)
        except Exception as e:
            await log_error(f"Ошибка БД ({action}): {e}")
            raise InternalError("Ошибка хранилища сообществ") from e

    async def _execute(self, action: str, query: str, *args: Any) -> str:
        try:
            return await self._db.execute(query, *args)
        except Exception as e:
            await log_error(f"Ошибка БД ({action}): {e}")
            raise InternalError("Ошибка хранилища сообществ") from e

    # =========================================================================
    # СООБЩЕСТВА
    # =========================================================================

    async def create(self, community: Community) -> Community:
        """
        Создаёт сообщество.

        Raises:
            ConflictError: название занято
        """
        row = await self._fetchrow(
            "создание сообщества",
            f"""
            INSERT INTO communities ({COMMUNITY_FIELDS})
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING {COMMUNITY_FIELDS}
            """,
            community.id,
            community.name,
            community.description,
            community.created_by,
            community.created_at,
            community.updated_at,
        )
        await log_info(f"Сообщество {community.id} «{community.name}» создано", type_msg=TypeMsg.DEBUG)
        return Community.model_validate(dict(row)) if row is not None else community

    async def get_by_id(self, community_id: UUID) -> Optional[Community]:
        """Сообщество по id или None."""
        row = await self._fetchrow(
            "получение сообщества",
            f"SELECT {COMMUNITY_FIELDS} FROM communities WHERE id = $1",
            community_id,
        )
        return Community.model_validate(dict(row)) if row is not None else None

    async def get_by_name(self, name: str) -> Optional[Community]:
        """Сообщество по названию без учёта регистра."""
        row = await self._fetchrow(
            "поиск сообщества по названию",
            f"SELECT {COMMUNITY_FIELDS} FROM communities WHERE LOWER(name) = LOWER($1)",
            name.strip(),
        )
        return Community.model_validate(dict(row)) if row is not None else None

    async def list_with_counts(self, viewer_id: Optional[str] = None) -> list[CommunitySummary]:
        """Все сообщества со счётчиками участников и неархивных объявлений."""
        rows = await self._fetch(
            "список сообществ",
            f"""
            SELECT c.id, c.name, c.description, c.created_by, c.created_at, c.updated_at,
                   (SELECT COUNT(*) FROM community_members m WHERE m.community_id = c.id) AS member_count,
                   (SELECT COUNT(*) FROM rides r
                     WHERE r.community_id = c.id AND r.is_archived = FALSE) AS ride_count,
                   EXISTS (SELECT 1 FROM community_members m
                            WHERE m.community_id = c.id AND m.user_id = $1) AS is_member
            FROM communities c
            ORDER BY c.created_at DESC, c.id DESC
            """,
            viewer_id,
        )
        return [CommunitySummary.model_validate(dict(row)) for row in rows]

    async def update(self, community: Community) -> Optional[Community]:
        """Сохраняет название и описание."""
        row = await self._fetchrow(
            "обновление сообщества",
            f"""
            UPDATE communities
            SET name = $2, description = $3, updated_at = $4
            WHERE id = $1
            RETURNING {COMMUNITY_FIELDS}
            """,
            community.id,
            community.name,
            community.description,
            datetime.now(timezone.utc),
        )
        return Community.model_validate(dict(row)) if row is not None else None

    async def delete(self, community_id: UUID) -> bool:
        """Удаляет сообщество (участники и объявления удаляются каскадно)."""
        status = await self._execute(
            "удаление сообщества",
            "DELETE FROM communities WHERE id = $1",
            community_id,
        )
        return affected_rows(status) == 1

    # =========================================================================
    # УЧАСТНИКИ
    # =========================================================================

    async def add_member(self, community_id: UUID, user_id: str, joined_at: datetime) -> Membership:
        """
        Добавляет участника.

        Raises:
            ConflictError: пользователь уже участник
        """
        try:
            row = await self._db.fetchrow(
                """
                INSERT INTO community_members (community_id, user_id, joined_at)
                VALUES ($1, $2, $3)
                RETURNING community_id, user_id, joined_at
                """,
                community_id,
                user_id,
                joined_at,
            )
        except Exception as e:
            if is_unique_violation(e):
                raise ConflictError("Вы уже участник сообщества") from e
            await log_error(f"Ошибка добавления {user_id} в сообщество {community_id}: {e}")
            raise InternalError("Не удалось добавить участника") from e

        if row is None:
            return Membership(community_id=community_id, user_id=user_id, joined_at=joined_at)
        return Membership.model_validate(dict(row))

    async def remove_member(self, community_id: UUID, user_id: str) -> bool:
        """Удаляет участника. True, если запись была."""
        status = await self._execute(
            "выход из сообщества",
            "DELETE FROM community_members WHERE community_id = $1 AND user_id = $2",
            community_id,
            user_id,
        )
        return affected_rows(status) == 1

    async def find_membership(self, community_id: UUID, user_id: str) -> Optional[Membership]:
        """Запись участия или None."""
        row = await self._fetchrow(
            "проверка участия",
            """
            SELECT community_id, user_id, joined_at
            FROM community_members
            WHERE community_id = $1 AND user_id = $2
            """,
            community_id,
            user_id,
        )
        return Membership.model_validate(dict(row)) if row is not None else None

    async def list_members(self, community_id: UUID) -> list[Membership]:
        """Участники сообщества по дате вступления."""
        rows = await self._fetch(
            "список участников",
            """
            SELECT community_id, user_id, joined_at
            FROM community_members
            WHERE community_id = $1
            ORDER BY joined_at ASC
            """,
            community_id,
        )
        return [Membership.model_validate(dict(row)) for row in rows]

    async def list_member_community_ids(self, user_id: str) -> list[UUID]:
        """Идентификаторы сообществ пользователя."""
        rows = await self._fetch(
            "сообщества пользователя",
            "SELECT community_id FROM community_members WHERE user_id = $1",
            user_id,
        )
        return [row["community_id"] for row in rows]

    async def list_for_member(self, user_id: str) -> list[Community]:
        """Сообщества, в которых состоит пользователь."""
        rows = await self._fetch(
            "сообщества пользователя",
            f"""
            SELECT c.id, c.name, c.description, c.created_by, c.created_at, c.updated_at
            FROM communities c
            JOIN community_members m ON m.community_id = c.id
            WHERE m.user_id = $1
            ORDER BY m.joined_at DESC
            """,
            user_id,
        )
        return [Community.model_validate(dict(row)) for row in rows]


class CommunityRequestRepository:
    """Репозиторий заявок на создание сообщества."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(self, request: CommunityRequest) -> CommunityRequest:
        """Сохраняет заявку."""
        try:
            row = await self._db.fetchrow(
                f"""
                INSERT INTO community_requests ({REQUEST_FIELDS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING {REQUEST_FIELDS}
                """,
                request.id,
                request.requested_by,
                request.name,
                request.description,
                request.status.value,
                request.rejection_reason,
                request.community_id,
                request.reviewed_at,
                request.created_at,
            )
        except Exception as e:
            await log_error(f"Ошибка создания заявки на сообщество «{request.name}»: {e}")
            raise InternalError("Не удалось сохранить заявку") from e

        return CommunityRequest.model_validate(dict(row)) if row is not None else request

    async def get_by_id(self, request_id: UUID) -> Optional[CommunityRequest]:
        """Заявка по id или None."""
        try:
            row = await self._db.fetchrow(
                f"SELECT {REQUEST_FIELDS} FROM community_requests WHERE id = $1",
                request_id,
            )
        except Exception as e:
            await log_error(f"Ошибка получения заявки {request_id}: {e}")
            raise InternalError("Не удалось загрузить заявку") from e

        return CommunityRequest.model_validate(dict(row)) if row is not None else None

    async def find_pending_by_name(self, name: str) -> Optional[CommunityRequest]:
        """Ожидающая заявка с таким названием (от любого пользователя)."""
        try:
            row = await self._db.fetchrow(
                f"""
                SELECT {REQUEST_FIELDS} FROM community_requests
                WHERE LOWER(name) = LOWER($1) AND status = 'pending'
                LIMIT 1
                """,
                name.strip(),
            )
        except Exception as e:
            await log_error(f"Ошибка поиска заявки «{name}»: {e}")
            raise InternalError("Не удалось проверить заявки") from e

        return CommunityRequest.model_validate(dict(row)) if row is not None else None

    async def list_requests(
        self,
        status: Optional[RequestStatus] = None,
        requested_by: Optional[str] = None,
    ) -> list[CommunityRequest]:
        """Заявки с необязательными фильтрами, новые первыми."""
        conditions: list[str] = []
        args: list[Any] = []
        if status is not None:
            args.append(status.value)
            conditions.append(f"status = ${len(args)}")
        if requested_by is not None:
            args.append(requested_by)
            conditions.append(f"requested_by = ${len(args)}")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        try:
            rows = await self._db.fetch(
                f"SELECT {REQUEST_FIELDS} FROM community_requests {where} ORDER BY created_at DESC",
                *args,
            )
        except Exception as e:
            await log_error(f"Ошибка получения списка заявок: {e}")
            raise InternalError("Не удалось загрузить заявки") from e

        return [CommunityRequest.model_validate(dict(row)) for row in rows]

    async def resolve(
        self,
        request_id: UUID,
        status: RequestStatus,
        rejection_reason: Optional[str],
        community_id: Optional[UUID],
        reviewed_at: datetime,
    ) -> Optional[CommunityRequest]:
        """
        Закрывает заявку, только если она ещё pending.

        Returns:
            Обновлённая заявка или None, если её уже рассмотрели
        """
        try:
            row = await self._db.fetchrow(
                f"""
                UPDATE community_requests
                SET status = $2, rejection_reason = $3, community_id = $4, reviewed_at = $5
                WHERE id = $1 AND status = 'pending'
                RETURNING {REQUEST_FIELDS}
                """,
                request_id,
                status.value,
                rejection_reason,
                community_id,
                reviewed_at,
            )
        except Exception as e:
            await log_error(f"Ошибка рассмотрения заявки {request_id}: {e}")
            raise InternalError("Не удалось сохранить решение по заявке") from e

        return CommunityRequest.model_validate(dict(row)) if row is not None else None
