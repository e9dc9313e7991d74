# tests/core/test_communities_service.py
"""
Тесты для сервиса сообществ.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import UUID

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.common.clock import FixedClock
from src.common.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from src.core.communities.models import (
    Community,
    CommunityCreateDTO,
    CommunityUpdateDTO,
    Membership,
)
from src.core.communities.service import CommunityService
from src.infra.event_bus import EventTypes

NOW = datetime(2025, 3, 10, 7, 0, tzinfo=timezone.utc)


def _echo(value):
    return value


class TestCommunityDTO:
    """Тесты для DTO сообщества."""

    def test_name_stripped(self) -> None:
        dto = CommunityCreateDTO(name="  Lahore Commuters ", description=" Поездки ")
        assert dto.name == "Lahore Commuters"
        assert dto.description == "Поездки"

    @pytest.mark.parametrize("name", ["", "   ", "x" * 101, 123])
    def test_invalid_name(self, name: object) -> None:
        with pytest.raises(PydanticValidationError):
            CommunityCreateDTO(name=name, description="Поездки")


class TestCommunityService:
    """Тесты для сервиса сообществ."""

    @pytest.fixture
    def service(self, mock_db: AsyncMock, mock_event_bus: AsyncMock) -> CommunityService:
        """Создаёт сервис с моками."""
        return CommunityService(db=mock_db, event_bus=mock_event_bus, clock=FixedClock(NOW))

    @pytest.fixture
    def community(self, community_id: UUID) -> Community:
        return Community(id=community_id, name="Lahore Commuters", description="Поездки", created_by="user-x")

    # =========================================================================
    # СОЗДАНИЕ
    # =========================================================================

    @pytest.mark.asyncio
    async def test_create_adds_creator(
        self,
        service: CommunityService,
        mock_event_bus: AsyncMock,
    ) -> None:
        repo = service._repo
        with patch.object(repo, "get_by_name", new_callable=AsyncMock, return_value=None), \
                patch.object(repo, "create", new_callable=AsyncMock, side_effect=_echo), \
                patch.object(repo, "add_member", new_callable=AsyncMock) as add_member:
            result = await service.create_community(
                "user-x", CommunityCreateDTO(name="Lahore Commuters", description="Поездки")
            )

        assert result.creator_joined is True
        assert result.community.created_by == "user-x"
        add_member.assert_awaited_once_with(result.community.id, "user-x", NOW)
        assert mock_event_bus.publish.call_args.args[0].event_type == EventTypes.COMMUNITY_CREATED

    @pytest.mark.asyncio
    async def test_membership_failure_is_not_fatal(self, service: CommunityService) -> None:
        """Сообщество остаётся, даже если участие создателя записать не удалось."""
        repo = service._repo
        with patch.object(repo, "get_by_name", new_callable=AsyncMock, return_value=None), \
                patch.object(repo, "create", new_callable=AsyncMock, side_effect=_echo) as create, \
                patch.object(repo, "add_member", new_callable=AsyncMock, side_effect=RuntimeError("deadlock")), \
                patch("src.core.communities.service.log_error", new_callable=AsyncMock) as log_error:
            result = await service.create_community(
                "user-x", CommunityCreateDTO(name="Lahore Commuters", description="Поездки")
            )

        create.assert_awaited_once()
        assert result.creator_joined is False
        log_error.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_name(self, service: CommunityService, community: Community) -> None:
        with patch.object(service._repo, "get_by_name", new_callable=AsyncMock, return_value=community):
            with pytest.raises(ConflictError):
                await service.create_community(
                    "user-y", CommunityCreateDTO(name="lahore commuters", description="Ещё одно")
                )

    # =========================================================================
    # УЧАСТНИКИ
    # =========================================================================

    @pytest.mark.asyncio
    async def test_join_then_find_membership(
        self,
        service: CommunityService,
        community: Community,
        community_id: UUID,
    ) -> None:
        membership = Membership(community_id=community_id, user_id="user-a", joined_at=NOW)
        repo = service._repo
        with patch.object(repo, "get_by_id", new_callable=AsyncMock, return_value=community), \
                patch.object(repo, "find_membership", new_callable=AsyncMock, side_effect=[None, membership]), \
                patch.object(repo, "add_member", new_callable=AsyncMock, return_value=membership) as add_member:
            joined = await service.join("user-a", community_id)
            found = await service.find_membership("user-a", community_id)

        add_member.assert_awaited_once_with(community_id, "user-a", NOW)
        assert joined == membership
        assert found is not None
        assert found.user_id == "user-a"

    @pytest.mark.asyncio
    async def test_join_twice_conflicts(
        self,
        service: CommunityService,
        community: Community,
        community_id: UUID,
    ) -> None:
        membership = Membership(community_id=community_id, user_id="user-a")
        with patch.object(service._repo, "get_by_id", new_callable=AsyncMock, return_value=community), \
                patch.object(service._repo, "find_membership", new_callable=AsyncMock, return_value=membership):
            with pytest.raises(ConflictError):
                await service.join("user-a", community_id)

    @pytest.mark.asyncio
    async def test_join_missing_community(self, service: CommunityService, community_id: UUID) -> None:
        with patch.object(service._repo, "get_by_id", new_callable=AsyncMock, return_value=None):
            with pytest.raises(NotFoundError):
                await service.join("user-a", community_id)

    @pytest.mark.asyncio
    async def test_creator_cannot_leave(
        self,
        service: CommunityService,
        community: Community,
        community_id: UUID,
    ) -> None:
        with patch.object(service._repo, "get_by_id", new_callable=AsyncMock, return_value=community):
            with pytest.raises(ValidationError):
                await service.leave("user-x", community_id)

    @pytest.mark.asyncio
    async def test_leave_when_not_member(
        self,
        service: CommunityService,
        community: Community,
        community_id: UUID,
    ) -> None:
        with patch.object(service._repo, "get_by_id", new_callable=AsyncMock, return_value=community), \
                patch.object(service._repo, "remove_member", new_callable=AsyncMock, return_value=False):
            with pytest.raises(NotFoundError):
                await service.leave("user-a", community_id)

    # =========================================================================
    # ИЗМЕНЕНИЕ
    # =========================================================================

    @pytest.mark.asyncio
    async def test_update_only_by_creator(
        self,
        service: CommunityService,
        community: Community,
        community_id: UUID,
    ) -> None:
        with patch.object(service._repo, "get_by_id", new_callable=AsyncMock, return_value=community):
            with pytest.raises(UnauthorizedError):
                await service.update_community("user-a", community_id, CommunityUpdateDTO(description="Новое"))

    @pytest.mark.asyncio
    async def test_update_description(
        self,
        service: CommunityService,
        community: Community,
        community_id: UUID,
    ) -> None:
        with patch.object(service._repo, "get_by_id", new_callable=AsyncMock, return_value=community), \
                patch.object(service._repo, "update", new_callable=AsyncMock, side_effect=_echo):
            result = await service.update_community("user-x", community_id, CommunityUpdateDTO(description="Новое"))

        assert result.description == "Новое"
        assert result.name == "Lahore Commuters"

    @pytest.mark.asyncio
    async def test_rename_to_taken_name(
        self,
        service: CommunityService,
        community: Community,
        community_id: UUID,
    ) -> None:
        other = Community(name="Karachi Carpool", created_by="user-z")
        with patch.object(service._repo, "get_by_id", new_callable=AsyncMock, return_value=community), \
                patch.object(service._repo, "get_by_name", new_callable=AsyncMock, return_value=other):
            with pytest.raises(ConflictError):
                await service.update_community("user-x", community_id, CommunityUpdateDTO(name="Karachi Carpool"))

    @pytest.mark.asyncio
    async def test_delete_missing_is_not_found(self, service: CommunityService, community_id: UUID) -> None:
        with patch.object(service._repo, "get_by_id", new_callable=AsyncMock, return_value=None):
            with pytest.raises(NotFoundError):
                await service.delete_community("user-x", community_id)
