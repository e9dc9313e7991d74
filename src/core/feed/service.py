# src/core/feed/service.py
"""
Сборка ленты объявлений.
Определяет видимые сообщества вызывающего, делегирует поиск RideRepository,
применяет дополнительный фильтр и режет выдачу на страницы.
"""

from __future__ import annotations

from typing import Optional

from src.common.clock import Clock, SystemClock
from src.common.constants import CommunityScopeKind, FilterType, GenderPreference, TypeMsg
from src.common.errors import NotFoundError, UnauthorizedError
from src.common.logger import log_info
from src.core.communities.repository import CommunityRepository
from src.core.feed.models import FeedPage, FeedParams, decode_cursor, encode_cursor
from src.core.rides.models import FeedRide
from src.core.rides.query import CommunityScope, RideFilter
from src.core.rides.repository import RideRepository
from src.infra.database import DatabaseManager

_GENDER_FILTERS = {
    FilterType.GIRLS_ONLY: GenderPreference.GIRLS_ONLY,
    FilterType.BOYS_ONLY: GenderPreference.BOYS_ONLY,
    FilterType.BOTH: GenderPreference.BOTH,
}


def apply_filter_type(rides: list[FeedRide], filter_type: FilterType) -> list[FeedRide]:
    """Фильтр по подтверждённому владельцу или по предпочтению пола."""
    if filter_type == FilterType.VERIFIED:
        return [r for r in rides if r.owner_nic_verified]
    preference = _GENDER_FILTERS.get(filter_type)
    if preference is None:
        return rides
    return [r for r in rides if r.gender_preference == preference]


class FeedAssembler:
    """Лента объявлений."""

    def __init__(self, db: DatabaseManager, clock: Clock | None = None) -> None:
        self._ride_repo = RideRepository(db)
        self._community_repo = CommunityRepository(db)
        self._clock = clock or SystemClock()

    async def resolve_scope(self, user_id: Optional[str], params: FeedParams) -> CommunityScope:
        """
        Область видимости для вызывающего.
        Анонимный видит только общую ленту; all добавляет сообщества, где он участник.

        Raises:
            UnauthorizedError: запрошено сообщество, в котором вызывающий не состоит
            NotFoundError: запрошенного сообщества нет
        """
        kind = params.scope_kind
        if kind == CommunityScopeKind.PUBLIC:
            return CommunityScope.public()

        if kind == CommunityScopeKind.ALL:
            if user_id is None:
                return CommunityScope.public()
            return CommunityScope.all(await self._community_repo.list_member_community_ids(user_id))

        community_id = params.community_id
        if user_id is None:
            raise UnauthorizedError(
                "Лента сообщества доступна только его участникам",
                details={"community_id": str(community_id)},
            )
        if await self._community_repo.get_by_id(community_id) is None:
            raise NotFoundError("Сообщество не найдено", details={"community_id": str(community_id)})
        if await self._community_repo.find_membership(community_id, user_id) is None:
            raise UnauthorizedError(
                "Лента сообщества доступна только его участникам",
                details={"community_id": str(community_id)},
            )
        return CommunityScope.community(community_id)

    async def assemble_feed(self, user_id: Optional[str], params: FeedParams) -> FeedPage:
        """
        Страница ленты.

        Raises:
            ValidationError: повреждённый курсор
            UnauthorizedError, NotFoundError: см. resolve_scope
        """
        from src.config import settings

        offset = decode_cursor(params.cursor)
        limit = min(params.limit or settings.domain.FEED_DEFAULT_LIMIT, settings.domain.FEED_MAX_LIMIT)

        scope = await self.resolve_scope(user_id, params)
        ride_filter = RideFilter(
            type=params.type,
            scope=scope,
            sort_by=params.sort_by,
            search_text=params.search_text,
        )
        rides = apply_filter_type(
            await self._ride_repo.search(ride_filter, self._clock.now()),
            params.filter_type,
        )

        items = rides[offset:offset + limit]
        next_offset = offset + limit
        next_cursor = encode_cursor(next_offset) if next_offset < len(rides) else None

        await log_info(
            f"Лента: scope={params.community_scope}, найдено {len(rides)}, отдано {len(items)}",
            type_msg=TypeMsg.DEBUG,
        )
        return FeedPage(items=items, next_cursor=next_cursor)
