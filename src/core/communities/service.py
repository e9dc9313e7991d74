# src/core/communities/service.py
"""
Сервисы сообществ и заявок на их создание.
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from src.common.clock import Clock, SystemClock
from src.common.constants import RequestStatus, ReviewDecision, TypeMsg
from src.common.errors import (
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from src.common.logger import log_error, log_info, log_warning
from src.core.communities.models import (
    Community,
    CommunityCreateDTO,
    CommunityCreateResult,
    CommunityRequest,
    CommunityRequestReviewDTO,
    CommunitySummary,
    CommunityUpdateDTO,
    Membership,
)
from src.core.communities.repository import CommunityRepository, CommunityRequestRepository
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


class CommunityService:
    """Сервис сообществ и участия в них."""

    def __init__(
        self,
        db: DatabaseManager,
        event_bus: EventBus,
        clock: Clock | None = None,
    ) -> None:
        self._repo = CommunityRepository(db)
        self._event_bus = event_bus
        self._clock = clock or SystemClock()

    # =========================================================================
    # СООБЩЕСТВА
    # =========================================================================

    async def create_community(self, user_id: str, dto: CommunityCreateDTO) -> CommunityCreateResult:
        """
        Создаёт сообщество и добавляет в него создателя.

        Запись участия создаётся после сохранения сообщества. Если она не удалась,
        сообщество остаётся, ошибка логируется, а в результате creator_joined=False.

        Raises:
            ConflictError: название занято
        """
        if await self._repo.get_by_name(dto.name) is not None:
            raise ConflictError("Сообщество с таким названием уже существует", details={"name": dto.name})

        now = self._clock.now()
        community = await self._repo.create(
            Community(
                name=dto.name,
                description=dto.description,
                created_by=user_id,
                created_at=now,
                updated_at=now,
            )
        )

        creator_joined = True
        try:
            await self._repo.add_member(community.id, user_id, now)
        except Exception as e:
            creator_joined = False
            await log_error(f"Сообщество {community.id} создано, но создатель {user_id} не добавлен: {e}")

        await log_info(f"Сообщество «{community.name}» создано пользователем {user_id}", type_msg=TypeMsg.INFO)
        await self._publish(
            EventTypes.COMMUNITY_CREATED,
            {"community_id": str(community.id), "name": community.name, "created_by": user_id},
        )
        return CommunityCreateResult(community=community, creator_joined=creator_joined)

    async def list_communities(self, viewer_id: Optional[str] = None) -> list[CommunitySummary]:
        """Все сообщества со счётчиками."""
        return await self._repo.list_with_counts(viewer_id)

    async def get_community(self, community_id: UUID) -> Community:
        """Сообщество или NotFoundError."""
        community = await self._repo.get_by_id(community_id)
        if community is None:
            raise NotFoundError("Сообщество не найдено", details={"community_id": str(community_id)})
        return community

    async def update_community(self, user_id: str, community_id: UUID, dto: CommunityUpdateDTO) -> Community:
        """Изменяет сообщество; разрешено только создателю."""
        community = await self._get_created_by(user_id, community_id)
        changes = dto.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return community

        new_name = changes.get("name")
        if new_name is not None and new_name.lower() != community.name.lower():
            if await self._repo.get_by_name(new_name) is not None:
                raise ConflictError("Сообщество с таким названием уже существует", details={"name": new_name})

        saved = await self._repo.update(community.model_copy(update=changes))
        if saved is None:
            raise NotFoundError("Сообщество не найдено", details={"community_id": str(community_id)})
        return saved

    async def delete_community(self, user_id: str, community_id: UUID) -> None:
        """Удаляет сообщество; разрешено только создателю."""
        await self._get_created_by(user_id, community_id)
        if not await self._repo.delete(community_id):
            raise NotFoundError("Сообщество не найдено", details={"community_id": str(community_id)})
        await log_info(f"Сообщество {community_id} удалено создателем {user_id}", type_msg=TypeMsg.INFO)

    # =========================================================================
    # УЧАСТНИКИ
    # =========================================================================

    async def join(self, user_id: str, community_id: UUID) -> Membership:
        """
        Вступление в сообщество.

        Raises:
            NotFoundError: сообщества нет
            ConflictError: уже участник
        """
        await self.get_community(community_id)
        if await self._repo.find_membership(community_id, user_id) is not None:
            raise ConflictError("Вы уже участник сообщества", details={"community_id": str(community_id)})
        return await self._repo.add_member(community_id, user_id, self._clock.now())

    async def leave(self, user_id: str, community_id: UUID) -> None:
        """
        Выход из сообщества.

        Raises:
            NotFoundError: сообщества нет или пользователь не участник
            ValidationError: создатель не может выйти
        """
        community = await self.get_community(community_id)
        if community.created_by == user_id:
            raise ValidationError("Создатель не может покинуть своё сообщество")
        if not await self._repo.remove_member(community_id, user_id):
            raise NotFoundError("Вы не участник сообщества", details={"community_id": str(community_id)})

    async def find_membership(self, user_id: str, community_id: UUID) -> Optional[Membership]:
        """Запись участия пользователя или None."""
        return await self._repo.find_membership(community_id, user_id)

    async def list_members(self, community_id: UUID) -> list[Membership]:
        """Участники сообщества."""
        await self.get_community(community_id)
        return await self._repo.list_members(community_id)

    async def list_user_communities(self, user_id: str) -> list[Community]:
        """Сообщества пользователя."""
        return await self._repo.list_for_member(user_id)

    # =========================================================================
    # ВСПОМОГАТЕЛЬНЫЕ
    # =========================================================================

    async def _get_created_by(self, user_id: str, community_id: UUID) -> Community:
        community = await self.get_community(community_id)
        if community.created_by != user_id:
            raise UnauthorizedError(
                "Изменять сообщество может только его создатель",
                details={"community_id": str(community_id)},
            )
        return community

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type}: {e}")


class CommunityRequestService:
    """
    Заявки на создание сообщества.
    Пользователь подаёт заявку, администратор одобряет (создаётся сообщество) или отклоняет.
    """

    def __init__(
        self,
        db: DatabaseManager,
        event_bus: EventBus,
        community_service: CommunityService,
        clock: Clock | None = None,
    ) -> None:
        self._repo = CommunityRequestRepository(db)
        self._community_repo = CommunityRepository(db)
        self._communities = community_service
        self._event_bus = event_bus
        self._clock = clock or SystemClock()

    async def submit(self, user_id: str, dto: CommunityCreateDTO) -> CommunityRequest:
        """
        Подаёт заявку.

        Raises:
            ConflictError: сообщество уже есть или такая заявка уже ожидает решения
        """
        if await self._community_repo.get_by_name(dto.name) is not None:
            raise ConflictError("Сообщество с таким названием уже существует", details={"name": dto.name})
        if await self._repo.find_pending_by_name(dto.name) is not None:
            raise ConflictError("Заявка на сообщество с таким названием уже ожидает решения", details={"name": dto.name})

        request = await self._repo.create(
            CommunityRequest(
                requested_by=user_id,
                name=dto.name,
                description=dto.description,
                created_at=self._clock.now(),
            )
        )
        await log_info(f"Заявка на сообщество «{request.name}» от {user_id}", type_msg=TypeMsg.INFO)
        await self._publish(
            EventTypes.COMMUNITY_REQUEST_SUBMITTED,
            {"request_id": str(request.id), "name": request.name, "requested_by": user_id},
        )
        return request

    async def list_requests(
        self,
        status: Optional[RequestStatus] = RequestStatus.PENDING,
        requested_by: Optional[str] = None,
    ) -> list[CommunityRequest]:
        """Заявки по статусу и/или автору."""
        return await self._repo.list_requests(status=status, requested_by=requested_by)

    async def review(self, request_id: UUID, dto: CommunityRequestReviewDTO) -> CommunityRequest:
        """
        Рассматривает заявку (только администратор; проверка на границе API).

        Raises:
            NotFoundError: заявки нет
            InvalidStateTransitionError: заявка уже рассмотрена
            ConflictError: при одобрении название оказалось занято
        """
        request = await self._repo.get_by_id(request_id)
        if request is None:
            raise NotFoundError("Заявка не найдена", details={"request_id": str(request_id)})
        if request.status != RequestStatus.PENDING:
            raise InvalidStateTransitionError(
                "Заявка уже рассмотрена",
                details={"request_id": str(request_id), "status": request.status.value},
            )

        community_id: Optional[UUID] = None
        if dto.decision == ReviewDecision.APPROVE:
            created = await self._communities.create_community(
                request.requested_by,
                CommunityCreateDTO(name=request.name, description=request.description),
            )
            community_id = created.community.id
            status = RequestStatus.APPROVED
        else:
            status = RequestStatus.REJECTED

        resolved = await self._repo.resolve(
            request_id,
            status,
            dto.rejection_reason if status == RequestStatus.REJECTED else None,
            community_id,
            self._clock.now(),
        )
        if resolved is None:
            # Параллельное рассмотрение успело раньше
            await log_warning(f"Заявка {request_id} рассмотрена параллельно, сообщество {community_id} уже создано")
            raise InvalidStateTransitionError("Заявка уже рассмотрена", details={"request_id": str(request_id)})

        await log_info(f"Заявка {request_id} рассмотрена: {status.value}", type_msg=TypeMsg.INFO)
        await self._publish(
            EventTypes.COMMUNITY_REQUEST_REVIEWED,
            {
                "request_id": str(request_id),
                "status": status.value,
                "requested_by": request.requested_by,
                "community_id": str(community_id) if community_id else None,
            },
        )
        return resolved

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type}: {e}")
