# src/core/rides/query.py
"""
Фильтр поиска объявлений.

SQL-запрос сужает выборку на стороне PostgreSQL, а окончательное решение
о попадании объявления в ленту принимает matches() поверх ExpiryPolicy,
чтобы правило активности существовало в одном месте.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from src.common.constants import CommunityScopeKind, RideType, SortBy
from src.core.rides.expiry import is_active
from src.core.rides.models import FeedRide


RIDE_COLUMNS = """
    r.id, r.user_id, r.type, r.gender_preference, r.start_location, r.end_location,
    r.ride_date, r.ride_time, r.seats_available, r.description, r.phone,
    r.community_id, r.recurring_days, r.expires_at, r.is_archived,
    r.created_at, r.updated_at,
    COALESCE(p.disable_auto_expiry, FALSE) AS owner_disables_auto_expiry,
    COALESCE(p.nic_status = 'verified', FALSE) AS owner_nic_verified,
    p.full_name AS owner_name
"""

RIDES_WITH_OWNER = f"""
    SELECT {RIDE_COLUMNS}
    FROM rides r
    LEFT JOIN profiles p ON p.user_id = r.user_id
"""


class CommunityScope(BaseModel):
    """
    Область видимости.
    PUBLIC: только общая лента; COMMUNITY: одно сообщество;
    ALL: общая лента и сообщества из member_of.
    """

    kind: CommunityScopeKind = CommunityScopeKind.PUBLIC
    community_id: Optional[UUID] = None
    member_of: list[UUID] = Field(default_factory=list)

    @model_validator(mode="after")
    def _community_requires_id(self) -> "CommunityScope":
        if self.kind == CommunityScopeKind.COMMUNITY and self.community_id is None:
            raise ValueError("Для области community нужен community_id")
        return self

    @classmethod
    def public(cls) -> "CommunityScope":
        return cls(kind=CommunityScopeKind.PUBLIC)

    @classmethod
    def community(cls, community_id: UUID) -> "CommunityScope":
        return cls(kind=CommunityScopeKind.COMMUNITY, community_id=community_id)

    @classmethod
    def all(cls, member_of: Iterable[UUID]) -> "CommunityScope":
        return cls(kind=CommunityScopeKind.ALL, member_of=list(member_of))

    def allows(self, community_id: Optional[UUID]) -> bool:
        """Попадает ли объявление с таким community_id в область."""
        if self.kind == CommunityScopeKind.COMMUNITY:
            return community_id == self.community_id
        if community_id is None:
            return True
        return self.kind == CommunityScopeKind.ALL and community_id in self.member_of


class RideFilter(BaseModel):
    """Параметры поиска объявлений."""

    type: Optional[RideType] = None
    scope: CommunityScope = Field(default_factory=CommunityScope.public)
    sort_by: SortBy = SortBy.NEWEST
    search_text: Optional[str] = None

    @property
    def needle(self) -> Optional[str]:
        """Нормализованный текст поиска или None."""
        if self.search_text is None:
            return None
        text = self.search_text.strip().lower()
        return text or None


# =============================================================================
# SQL
# =============================================================================

def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_search_query(ride_filter: RideFilter, now: datetime) -> tuple[str, list[Any]]:
    """
    Строит SQL для поиска объявлений ленты.

    Returns:
        (запрос, параметры) для DatabaseManager.fetch
    """
    args: list[Any] = []
    conditions = ["r.is_archived = FALSE"]

    def arg(value: Any) -> str:
        args.append(value)
        return f"${len(args)}"

    conditions.append(f"(r.expires_at > {arg(now)} OR COALESCE(p.disable_auto_expiry, FALSE))")

    scope = ride_filter.scope
    if scope.kind == CommunityScopeKind.COMMUNITY:
        conditions.append(f"r.community_id = {arg(scope.community_id)}")
    elif scope.kind == CommunityScopeKind.ALL and scope.member_of:
        conditions.append(f"(r.community_id IS NULL OR r.community_id = ANY({arg(list(scope.member_of))}::uuid[]))")
    else:
        conditions.append("r.community_id IS NULL")

    if ride_filter.type is not None:
        conditions.append(f"r.type = {arg(ride_filter.type.value)}")

    needle = ride_filter.needle
    if needle is not None:
        pattern = arg(f"%{_escape_like(needle)}%")
        conditions.append(
            f"(r.start_location ILIKE {pattern} OR r.end_location ILIKE {pattern} "
            f"OR COALESCE(r.description, '') ILIKE {pattern})"
        )

    order_by = {
        SortBy.NEWEST: "r.created_at DESC, r.id DESC",
        SortBy.OLDEST: "r.created_at ASC, r.id ASC",
        SortBy.DATE: "r.ride_date ASC, r.ride_time ASC, r.created_at DESC",
    }[ride_filter.sort_by]

    query = f"{RIDES_WITH_OWNER} WHERE {' AND '.join(conditions)} ORDER BY {order_by}"
    return query, args


# =============================================================================
# ОТБОР И СОРТИРОВКА В ПАМЯТИ
# =============================================================================

def matches_text(ride: FeedRide, needle: Optional[str]) -> bool:
    """Подстрока без учёта регистра в любом из трёх полей, все поля равноправны."""
    if needle is None:
        return True
    haystacks = (ride.start_location, ride.end_location, ride.description or "")
    return any(needle in h.lower() for h in haystacks)


def matches(ride: FeedRide, ride_filter: RideFilter, now: datetime) -> bool:
    """Попадает ли объявление в выдачу по фильтру в момент now."""
    if not is_active(ride, ride.owner_disables_auto_expiry, now):
        return False
    if not ride_filter.scope.allows(ride.community_id):
        return False
    if ride_filter.type is not None and ride.type != ride_filter.type:
        return False
    return matches_text(ride, ride_filter.needle)


def sort_rides(rides: list[FeedRide], sort_by: SortBy) -> list[FeedRide]:
    """Сортирует объявления; порядок детерминирован при равных временах."""
    if sort_by == SortBy.OLDEST:
        return sorted(rides, key=lambda r: (r.created_at, str(r.id)))
    if sort_by == SortBy.DATE:
        newest_first = sorted(rides, key=lambda r: (r.created_at, str(r.id)), reverse=True)
        return sorted(newest_first, key=lambda r: (r.ride_date, r.ride_time))
    return sorted(rides, key=lambda r: (r.created_at, str(r.id)), reverse=True)
