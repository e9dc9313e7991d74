# tests/core/test_feed_service.py
"""
Тесты для сборки ленты.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.common.clock import FixedClock
from src.common.constants import CommunityScopeKind, FilterType
from src.common.errors import NotFoundError, UnauthorizedError, ValidationError
from src.core.communities.models import Community, Membership
from src.core.feed.models import FeedParams, decode_cursor, encode_cursor
from src.core.feed.service import FeedAssembler, apply_filter_type
from src.core.rides.models import FeedRide

NOW = datetime(2025, 3, 10, 7, 0, tzinfo=timezone.utc)


class TestFeedParams:
    """Тесты для параметров ленты."""

    def test_defaults(self) -> None:
        params = FeedParams()
        assert params.scope_kind == CommunityScopeKind.PUBLIC
        assert params.community_id is None

    def test_all_scope_case_insensitive(self) -> None:
        assert FeedParams(community_scope="ALL").scope_kind == CommunityScopeKind.ALL

    def test_community_scope(self, community_id: UUID) -> None:
        params = FeedParams(community_scope=str(community_id))
        assert params.scope_kind == CommunityScopeKind.COMMUNITY
        assert params.community_id == community_id

    def test_unknown_scope_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            FeedParams(community_scope="friends")


class TestCursor:
    """Тесты для курсора страниц."""

    @pytest.mark.parametrize("offset", [0, 20, 12345])
    def test_encode_decode(self, offset: int) -> None:
        assert decode_cursor(encode_cursor(offset)) == offset

    def test_empty_cursor_is_start(self) -> None:
        assert decode_cursor(None) == 0
        assert decode_cursor("") == 0

    @pytest.mark.parametrize("cursor", ["!!!", "b2Zmc2V0Oi0x", "aGVsbG8"])
    def test_invalid_cursor(self, cursor: str) -> None:
        with pytest.raises(ValidationError):
            decode_cursor(cursor)


class TestApplyFilterType:
    """Тесты для дополнительного фильтра."""

    @pytest.fixture
    def rides(self, make_ride_row: Callable[..., dict[str, Any]]) -> list[FeedRide]:
        return [
            FeedRide.model_validate(make_ride_row(gender_preference="girls_only", owner_nic_verified=True)),
            FeedRide.model_validate(make_ride_row(gender_preference="boys_only")),
            FeedRide.model_validate(make_ride_row(gender_preference="both", owner_nic_verified=True)),
        ]

    def test_all_keeps_everything(self, rides: list[FeedRide]) -> None:
        assert apply_filter_type(rides, FilterType.ALL) == rides

    def test_verified_owner_only(self, rides: list[FeedRide]) -> None:
        result = apply_filter_type(rides, FilterType.VERIFIED)
        assert all(r.owner_nic_verified for r in result)
        assert len(result) == 2

    @pytest.mark.parametrize(
        "filter_type, preference",
        [
            (FilterType.GIRLS_ONLY, "girls_only"),
            (FilterType.BOYS_ONLY, "boys_only"),
            (FilterType.BOTH, "both"),
        ],
    )
    def test_gender_preference(self, rides: list[FeedRide], filter_type: FilterType, preference: str) -> None:
        result = apply_filter_type(rides, filter_type)
        assert [r.gender_preference.value for r in result] == [preference]


class TestFeedAssembler:
    """Тесты для сборки ленты."""

    @pytest.fixture
    def assembler(self, mock_db: AsyncMock) -> FeedAssembler:
        return FeedAssembler(db=mock_db, clock=FixedClock(NOW))

    @pytest.fixture
    def settings_mock(self) -> MagicMock:
        with patch("src.config.settings") as mock_settings:
            mock_settings.domain.FEED_DEFAULT_LIMIT = 2
            mock_settings.domain.FEED_MAX_LIMIT = 3
            yield mock_settings

    # =========================================================================
    # ОБЛАСТЬ ВИДИМОСТИ
    # =========================================================================

    @pytest.mark.asyncio
    async def test_anonymous_all_is_public(self, assembler: FeedAssembler) -> None:
        scope = await assembler.resolve_scope(None, FeedParams(community_scope="all"))
        assert scope.kind == CommunityScopeKind.PUBLIC

    @pytest.mark.asyncio
    async def test_all_includes_member_communities(self, assembler: FeedAssembler) -> None:
        mine = uuid4()
        with patch.object(
            assembler._community_repo, "list_member_community_ids",
            new_callable=AsyncMock,
            return_value=[mine],
        ):
            scope = await assembler.resolve_scope("user-a", FeedParams(community_scope="all"))

        assert scope.kind == CommunityScopeKind.ALL
        assert scope.allows(mine) is True
        assert scope.allows(None) is True

    @pytest.mark.asyncio
    async def test_anonymous_community_feed_denied(self, assembler: FeedAssembler, community_id: UUID) -> None:
        with pytest.raises(UnauthorizedError):
            await assembler.resolve_scope(None, FeedParams(community_scope=str(community_id)))

    @pytest.mark.asyncio
    async def test_missing_community(self, assembler: FeedAssembler, community_id: UUID) -> None:
        with patch.object(assembler._community_repo, "get_by_id", new_callable=AsyncMock, return_value=None):
            with pytest.raises(NotFoundError):
                await assembler.resolve_scope("user-a", FeedParams(community_scope=str(community_id)))

    @pytest.mark.asyncio
    async def test_non_member_community_feed_denied(self, assembler: FeedAssembler, community_id: UUID) -> None:
        community = Community(id=community_id, name="Lahore Commuters", created_by="user-x")
        with patch.object(assembler._community_repo, "get_by_id", new_callable=AsyncMock, return_value=community), \
                patch.object(assembler._community_repo, "find_membership", new_callable=AsyncMock, return_value=None):
            with pytest.raises(UnauthorizedError):
                await assembler.resolve_scope("user-b", FeedParams(community_scope=str(community_id)))

    # =========================================================================
    # СТРАНИЦЫ
    # =========================================================================

    @pytest.mark.asyncio
    async def test_lahore_commuters_feed(
        self,
        assembler: FeedAssembler,
        mock_db: AsyncMock,
        settings_mock: MagicMock,
        community_id: UUID,
        make_ride_row: Callable[..., dict[str, Any]],
    ) -> None:
        """Участник видит в ленте сообщества ровно объявление, опубликованное в нём."""
        community = Community(id=community_id, name="Lahore Commuters", created_by="user-x")
        membership = Membership(community_id=community_id, user_id="user-a")
        posted = make_ride_row(community_id=community_id)
        mock_db.fetch.return_value = [posted, make_ride_row(), make_ride_row(community_id=uuid4())]

        with patch.object(assembler._community_repo, "get_by_id", new_callable=AsyncMock, return_value=community), \
                patch.object(assembler._community_repo, "find_membership", new_callable=AsyncMock, return_value=membership):
            page = await assembler.assemble_feed("user-a", FeedParams(community_scope=str(community_id)))

        assert [r.id for r in page.items] == [posted["id"]]
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_pagination(
        self,
        assembler: FeedAssembler,
        mock_db: AsyncMock,
        settings_mock: MagicMock,
        make_ride_row: Callable[..., dict[str, Any]],
    ) -> None:
        rows = [make_ride_row(created_at=NOW - timedelta(minutes=i)) for i in range(5)]
        mock_db.fetch.return_value = rows

        first = await assembler.assemble_feed(None, FeedParams())
        second = await assembler.assemble_feed(None, FeedParams(cursor=first.next_cursor))
        third = await assembler.assemble_feed(None, FeedParams(cursor=second.next_cursor))

        seen = [r.id for page in (first, second, third) for r in page.items]
        assert seen == [row["id"] for row in rows]
        assert len(first.items) == 2
        assert third.next_cursor is None

    @pytest.mark.asyncio
    async def test_limit_capped(
        self,
        assembler: FeedAssembler,
        mock_db: AsyncMock,
        settings_mock: MagicMock,
        make_ride_row: Callable[..., dict[str, Any]],
    ) -> None:
        mock_db.fetch.return_value = [make_ride_row() for _ in range(10)]

        page = await assembler.assemble_feed(None, FeedParams(limit=50))

        assert len(page.items) == 3
        assert decode_cursor(page.next_cursor) == 3

    @pytest.mark.asyncio
    async def test_expired_rides_hidden(
        self,
        assembler: FeedAssembler,
        mock_db: AsyncMock,
        settings_mock: MagicMock,
        make_ride_row: Callable[..., dict[str, Any]],
    ) -> None:
        kept = make_ride_row(ride_date=date(2025, 3, 1), owner_disables_auto_expiry=True)
        mock_db.fetch.return_value = [make_ride_row(ride_date=date(2025, 3, 1)), kept]

        page = await assembler.assemble_feed(None, FeedParams())

        assert [r.id for r in page.items] == [kept["id"]]

    @pytest.mark.asyncio
    async def test_invalid_cursor(self, assembler: FeedAssembler, settings_mock: MagicMock) -> None:
        with pytest.raises(ValidationError):
            await assembler.assemble_feed(None, FeedParams(cursor="not-a-cursor"))
