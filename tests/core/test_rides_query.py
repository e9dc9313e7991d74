# tests/core/test_rides_query.py
"""
Тесты для фильтра поиска объявлений.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable
from uuid import uuid4

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.common.constants import CommunityScopeKind, RideType, SortBy
from src.core.rides.models import FeedRide
from src.core.rides.query import (
    CommunityScope,
    RideFilter,
    build_search_query,
    matches,
    matches_text,
    sort_rides,
)

NOW = datetime(2025, 3, 10, 7, 0, tzinfo=timezone.utc)


class TestCommunityScope:
    """Тесты для области видимости."""

    def test_community_requires_id(self) -> None:
        with pytest.raises(PydanticValidationError):
            CommunityScope(kind=CommunityScopeKind.COMMUNITY)

    def test_public_allows_only_public(self) -> None:
        scope = CommunityScope.public()
        assert scope.allows(None) is True
        assert scope.allows(uuid4()) is False

    def test_all_allows_member_communities(self) -> None:
        mine, other = uuid4(), uuid4()
        scope = CommunityScope.all([mine])

        assert scope.allows(None) is True
        assert scope.allows(mine) is True
        assert scope.allows(other) is False

    def test_community_excludes_public(self) -> None:
        community = uuid4()
        scope = CommunityScope.community(community)

        assert scope.allows(community) is True
        assert scope.allows(None) is False
        assert scope.allows(uuid4()) is False


class TestBuildSearchQuery:
    """Тесты для построения SQL."""

    def test_public_defaults(self) -> None:
        query, args = build_search_query(RideFilter(), NOW)

        assert "r.is_archived = FALSE" in query
        assert "r.community_id IS NULL" in query
        assert "ORDER BY r.created_at DESC, r.id DESC" in query
        assert args == [NOW]

    def test_community_scope_and_type(self) -> None:
        community = uuid4()
        ride_filter = RideFilter(type=RideType.SEEKING, scope=CommunityScope.community(community))

        query, args = build_search_query(ride_filter, NOW)

        assert "r.community_id = $2" in query
        assert "r.type = $3" in query
        assert args == [NOW, community, "seeking"]

    def test_all_scope_uses_member_list(self) -> None:
        mine = uuid4()
        query, args = build_search_query(RideFilter(scope=CommunityScope.all([mine])), NOW)

        assert "ANY($2::uuid[])" in query
        assert args[1] == [mine]

    def test_all_scope_without_memberships_is_public(self) -> None:
        query, _ = build_search_query(RideFilter(scope=CommunityScope.all([])), NOW)
        assert "r.community_id IS NULL" in query

    def test_search_text_escaped(self) -> None:
        query, args = build_search_query(RideFilter(search_text="  50%_off "), NOW)

        assert "ILIKE $2" in query
        assert args[1] == "%50\\%\\_off%"

    def test_sort_by_date(self) -> None:
        query, _ = build_search_query(RideFilter(sort_by=SortBy.DATE), NOW)
        assert "ORDER BY r.ride_date ASC, r.ride_time ASC, r.created_at DESC" in query


class TestMatches:
    """Тесты для отбора в памяти."""

    def test_text_matches_any_field_case_insensitive(
        self,
        make_ride_row: Callable[..., dict[str, Any]],
    ) -> None:
        ride = FeedRide.model_validate(
            make_ride_row(start_location="Model Town", end_location="Airport", description="Багаж ок")
        )

        assert matches_text(ride, "model") is True
        assert matches_text(ride, "airport") is True
        assert matches_text(ride, "багаж") is True
        assert matches_text(ride, "johar") is False
        assert matches_text(ride, None) is True

    def test_no_description_does_not_fail(self, make_ride_row: Callable[..., dict[str, Any]]) -> None:
        ride = FeedRide.model_validate(make_ride_row(description=None))
        assert matches_text(ride, "after work") is False

    def test_expired_excluded_unless_owner_disabled(
        self,
        make_ride_row: Callable[..., dict[str, Any]],
    ) -> None:
        past = date(2025, 3, 1)
        expired = FeedRide.model_validate(make_ride_row(ride_date=past))
        kept = FeedRide.model_validate(make_ride_row(ride_date=past, owner_disables_auto_expiry=True))

        assert matches(expired, RideFilter(), NOW) is False
        assert matches(kept, RideFilter(), NOW) is True

    def test_archived_always_excluded(self, make_ride_row: Callable[..., dict[str, Any]]) -> None:
        ride = FeedRide.model_validate(make_ride_row(is_archived=True, owner_disables_auto_expiry=True))
        assert matches(ride, RideFilter(), NOW) is False

    def test_community_scope_ignores_type_of_other_rides(
        self,
        make_ride_row: Callable[..., dict[str, Any]],
    ) -> None:
        community = uuid4()
        inside = FeedRide.model_validate(make_ride_row(community_id=community, type="seeking"))
        public = FeedRide.model_validate(make_ride_row(type="seeking"))
        ride_filter = RideFilter(scope=CommunityScope.community(community))

        assert matches(inside, ride_filter, NOW) is True
        assert matches(public, ride_filter, NOW) is False

    def test_type_filter(self, make_ride_row: Callable[..., dict[str, Any]]) -> None:
        ride = FeedRide.model_validate(make_ride_row(type="offering"))
        assert matches(ride, RideFilter(type=RideType.OFFERING), NOW) is True
        assert matches(ride, RideFilter(type=RideType.SEEKING), NOW) is False


class TestSortRides:
    """Тесты для сортировки."""

    @pytest.fixture
    def rides(self, make_ride_row: Callable[..., dict[str, Any]]) -> list[FeedRide]:
        return [
            FeedRide.model_validate(
                make_ride_row(created_at=NOW - timedelta(hours=3), ride_date=date(2025, 3, 12), ride_time="08:00")
            ),
            FeedRide.model_validate(
                make_ride_row(created_at=NOW - timedelta(hours=1), ride_date=date(2025, 3, 11), ride_time="09:30")
            ),
            FeedRide.model_validate(
                make_ride_row(created_at=NOW - timedelta(hours=2), ride_date=date(2025, 3, 11), ride_time="07:15")
            ),
        ]

    def test_newest(self, rides: list[FeedRide]) -> None:
        result = sort_rides(rides, SortBy.NEWEST)
        assert [r.created_at for r in result] == sorted((r.created_at for r in rides), reverse=True)

    def test_oldest(self, rides: list[FeedRide]) -> None:
        result = sort_rides(rides, SortBy.OLDEST)
        assert [r.created_at for r in result] == sorted(r.created_at for r in rides)

    def test_by_ride_date_and_time(self, rides: list[FeedRide]) -> None:
        result = sort_rides(rides, SortBy.DATE)
        assert [(r.ride_date, r.ride_time) for r in result] == [
            (date(2025, 3, 11), "07:15"),
            (date(2025, 3, 11), "09:30"),
            (date(2025, 3, 12), "08:00"),
        ]
