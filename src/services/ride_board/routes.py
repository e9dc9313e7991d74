# src/services/ride_board/routes.py
"""
HTTP API доски поездок (/api/v1).
Обработчики только разбирают запрос и вызывают сервисы; доменные ошибки
переводятся в коды ответа обработчиками исключений приложения.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from src.common.constants import FilterType, RequestStatus, RideType, SortBy
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
from src.core.communities.service import CommunityRequestService, CommunityService
from src.core.feed.models import FeedPage, FeedParams
from src.core.feed.service import FeedAssembler
from src.core.profiles.models import (
    AutoExpiryDTO,
    NicApprovalDTO,
    NicRejectionDTO,
    NicSubmissionDTO,
    Profile,
    ProfileUpdateDTO,
)
from src.core.profiles.service import ProfileService
from src.core.reviews.models import Review, ReviewCreateDTO, ReviewUpdateDTO
from src.core.reviews.service import ReviewService
from src.core.rides.models import (
    FeedRide,
    Ride,
    RideCheckResult,
    RideCreateDTO,
    RideCreateResult,
    RideUpdateDTO,
)
from src.core.rides.service import RideService
from src.core.verification.service import VerificationService
from src.services.ride_board.dependencies import (
    get_community_request_service,
    get_community_service,
    get_current_user_id,
    get_feed_assembler,
    get_profile_service,
    get_review_service,
    get_ride_service,
    get_verification_service,
    require_admin,
    require_user_id,
)
from src.shared.models.common import ErrorResponse

_ERRORS = {
    401: {"model": ErrorResponse, "description": "Не передан пользователь"},
    403: {"model": ErrorResponse, "description": "Нет прав"},
    404: {"model": ErrorResponse, "description": "Не найдено"},
    409: {"model": ErrorResponse, "description": "Конфликт состояния"},
    422: {"model": ErrorResponse, "description": "Некорректные данные"},
}


# =============================================================================
# ЛЕНТА
# =============================================================================

feed_router = APIRouter(prefix="/feed", tags=["Feed"], responses=_ERRORS)


@feed_router.get("", response_model=FeedPage)
async def get_feed(
    search_text: Optional[str] = Query(None, alias="searchText"),
    community_scope: str = Query("public", alias="communityScope"),
    type: Optional[RideType] = Query(None),
    sort_by: SortBy = Query(SortBy.NEWEST, alias="sortBy"),
    filter_type: FilterType = Query(FilterType.ALL, alias="filterType"),
    limit: Optional[int] = Query(None, ge=1),
    cursor: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_current_user_id),
    feed: FeedAssembler = Depends(get_feed_assembler),
) -> FeedPage:
    """Лента активных объявлений."""
    params = FeedParams(
        search_text=search_text,
        community_scope=community_scope,
        type=type,
        sort_by=sort_by,
        filter_type=filter_type,
        limit=limit,
        cursor=cursor,
    )
    return await feed.assemble_feed(user_id, params)


# =============================================================================
# ОБЪЯВЛЕНИЯ
# =============================================================================

rides_router = APIRouter(prefix="/rides", tags=["Rides"], responses=_ERRORS)


@rides_router.post("", response_model=RideCreateResult, status_code=status.HTTP_201_CREATED)
async def create_ride(
    dto: RideCreateDTO,
    user_id: str = Depends(require_user_id),
    service: RideService = Depends(get_ride_service),
) -> RideCreateResult:
    """Публикация объявления."""
    return await service.create_ride(user_id, dto)


@rides_router.get("", response_model=list[FeedRide])
async def list_rides_of_user(
    user_id: str = Query(..., alias="userId"),
    service: RideService = Depends(get_ride_service),
) -> list[FeedRide]:
    """Все объявления пользователя."""
    return await service.list_user_rides(user_id)


@rides_router.get("/check", response_model=RideCheckResult)
async def check_rides(
    user_id: str = Depends(require_user_id),
    service: RideService = Depends(get_ride_service),
) -> RideCheckResult:
    """Есть ли у пользователя активное и прошлое объявление."""
    return await service.check_rides(user_id)


@rides_router.get("/mine", response_model=list[FeedRide])
async def list_my_rides(
    user_id: str = Depends(require_user_id),
    service: RideService = Depends(get_ride_service),
) -> list[FeedRide]:
    """Мои поездки."""
    return await service.list_user_rides(user_id)


@rides_router.get("/{ride_id}", response_model=FeedRide)
async def get_ride(
    ride_id: UUID,
    service: RideService = Depends(get_ride_service),
) -> FeedRide:
    return await service.get_ride(ride_id)


@rides_router.patch("/{ride_id}", response_model=Ride)
async def update_ride(
    ride_id: UUID,
    dto: RideUpdateDTO,
    user_id: str = Depends(require_user_id),
    service: RideService = Depends(get_ride_service),
) -> Ride:
    """Редактирование объявления владельцем."""
    return await service.update_ride(user_id, ride_id, dto)


@rides_router.delete("/{ride_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ride(
    ride_id: UUID,
    user_id: str = Depends(require_user_id),
    service: RideService = Depends(get_ride_service),
) -> Response:
    await service.delete_ride(user_id, ride_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@rides_router.post("/{ride_id}/archive", response_model=Ride)
async def archive_ride(
    ride_id: UUID,
    user_id: str = Depends(require_user_id),
    service: RideService = Depends(get_ride_service),
) -> Ride:
    """Отметить поездку завершённой."""
    return await service.archive_ride(user_id, ride_id)


# =============================================================================
# ПРОФИЛЬ
# =============================================================================

profiles_router = APIRouter(prefix="/profiles", tags=["Profiles"], responses=_ERRORS)


@profiles_router.get("/me", response_model=Profile)
async def get_my_profile(
    user_id: str = Depends(require_user_id),
    service: ProfileService = Depends(get_profile_service),
) -> Profile:
    return await service.get_profile(user_id)


@profiles_router.put("/me", response_model=Profile)
async def update_my_profile(
    dto: ProfileUpdateDTO,
    user_id: str = Depends(require_user_id),
    service: ProfileService = Depends(get_profile_service),
) -> Profile:
    """Создание или изменение профиля."""
    return await service.upsert_profile(user_id, dto)


@profiles_router.put("/me/auto-expiry", response_model=Profile)
async def set_auto_expiry(
    dto: AutoExpiryDTO,
    user_id: str = Depends(require_user_id),
    service: ProfileService = Depends(get_profile_service),
) -> Profile:
    """Отключение или включение автоистечения объявлений."""
    return await service.set_auto_expiry(user_id, dto.disable_auto_expiry)


@profiles_router.post("/me/nic", response_model=Profile)
async def submit_nic(
    dto: NicSubmissionDTO,
    user_id: str = Depends(require_user_id),
    service: VerificationService = Depends(get_verification_service),
) -> Profile:
    """Отправка фото удостоверения на проверку."""
    return await service.submit(user_id, dto.front_image_url, dto.back_image_url)


# =============================================================================
# СООБЩЕСТВА
# =============================================================================

communities_router = APIRouter(prefix="/communities", tags=["Communities"], responses=_ERRORS)


@communities_router.get("", response_model=list[CommunitySummary])
async def list_communities(
    user_id: Optional[str] = Depends(get_current_user_id),
    service: CommunityService = Depends(get_community_service),
) -> list[CommunitySummary]:
    return await service.list_communities(user_id)


@communities_router.post("", response_model=CommunityCreateResult, status_code=status.HTTP_201_CREATED)
async def create_community(
    dto: CommunityCreateDTO,
    user_id: str = Depends(require_user_id),
    service: CommunityService = Depends(get_community_service),
) -> CommunityCreateResult:
    """Создание сообщества (создатель вступает автоматически)."""
    return await service.create_community(user_id, dto)


@communities_router.get("/mine", response_model=list[Community])
async def list_my_communities(
    user_id: str = Depends(require_user_id),
    service: CommunityService = Depends(get_community_service),
) -> list[Community]:
    return await service.list_user_communities(user_id)


@communities_router.get("/{community_id}", response_model=Community)
async def get_community(
    community_id: UUID,
    service: CommunityService = Depends(get_community_service),
) -> Community:
    return await service.get_community(community_id)


@communities_router.patch("/{community_id}", response_model=Community)
async def update_community(
    community_id: UUID,
    dto: CommunityUpdateDTO,
    user_id: str = Depends(require_user_id),
    service: CommunityService = Depends(get_community_service),
) -> Community:
    return await service.update_community(user_id, community_id, dto)


@communities_router.delete("/{community_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_community(
    community_id: UUID,
    user_id: str = Depends(require_user_id),
    service: CommunityService = Depends(get_community_service),
) -> Response:
    await service.delete_community(user_id, community_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@communities_router.post(
    "/{community_id}/members",
    response_model=Membership,
    status_code=status.HTTP_201_CREATED,
)
async def join_community(
    community_id: UUID,
    user_id: str = Depends(require_user_id),
    service: CommunityService = Depends(get_community_service),
) -> Membership:
    """Вступить в сообщество."""
    return await service.join(user_id, community_id)


@communities_router.delete("/{community_id}/members", status_code=status.HTTP_204_NO_CONTENT)
async def leave_community(
    community_id: UUID,
    user_id: str = Depends(require_user_id),
    service: CommunityService = Depends(get_community_service),
) -> Response:
    """Выйти из сообщества."""
    await service.leave(user_id, community_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@communities_router.get("/{community_id}/members", response_model=list[Membership])
async def list_members(
    community_id: UUID,
    service: CommunityService = Depends(get_community_service),
) -> list[Membership]:
    return await service.list_members(community_id)


community_requests_router = APIRouter(
    prefix="/community-requests",
    tags=["Communities"],
    responses=_ERRORS,
)


@community_requests_router.post("", response_model=CommunityRequest, status_code=status.HTTP_201_CREATED)
async def submit_community_request(
    dto: CommunityCreateDTO,
    user_id: str = Depends(require_user_id),
    service: CommunityRequestService = Depends(get_community_request_service),
) -> CommunityRequest:
    """Заявка на создание сообщества."""
    return await service.submit(user_id, dto)


@community_requests_router.get("/mine", response_model=list[CommunityRequest])
async def list_my_community_requests(
    user_id: str = Depends(require_user_id),
    service: CommunityRequestService = Depends(get_community_request_service),
) -> list[CommunityRequest]:
    return await service.list_requests(status=None, requested_by=user_id)


# =============================================================================
# ОТЗЫВЫ
# =============================================================================

reviews_router = APIRouter(prefix="/reviews", tags=["Reviews"], responses=_ERRORS)


@reviews_router.get("", response_model=list[Review])
async def list_reviews(
    ride_id: Optional[UUID] = Query(None, alias="rideId"),
    driver_id: Optional[str] = Query(None, alias="driverId"),
    service: ReviewService = Depends(get_review_service),
) -> list[Review]:
    """Отзывы к объявлению или о водителе."""
    return await service.list_reviews(ride_id=ride_id, driver_id=driver_id)


@reviews_router.post("", response_model=Review, status_code=status.HTTP_201_CREATED)
async def create_review(
    dto: ReviewCreateDTO,
    user_id: str = Depends(require_user_id),
    service: ReviewService = Depends(get_review_service),
) -> Review:
    return await service.create_review(user_id, dto)


@reviews_router.patch("/{review_id}", response_model=Review)
async def update_review(
    review_id: UUID,
    dto: ReviewUpdateDTO,
    user_id: str = Depends(require_user_id),
    service: ReviewService = Depends(get_review_service),
) -> Review:
    return await service.update_review(user_id, review_id, dto)


# =============================================================================
# АДМИНИСТРИРОВАНИЕ
# =============================================================================

admin_router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
    responses=_ERRORS,
)


@admin_router.get("/verifications", response_model=list[Profile])
async def list_pending_verifications(
    service: VerificationService = Depends(get_verification_service),
) -> list[Profile]:
    """Удостоверения, ожидающие проверки."""
    return await service.list_pending()


@admin_router.post("/verifications/{user_id}/approve", response_model=Profile)
async def approve_verification(
    user_id: str,
    dto: NicApprovalDTO,
    service: VerificationService = Depends(get_verification_service),
) -> Profile:
    return await service.approve(user_id, dto.nic_number)


@admin_router.post("/verifications/{user_id}/reject", response_model=Profile)
async def reject_verification(
    user_id: str,
    dto: NicRejectionDTO,
    service: VerificationService = Depends(get_verification_service),
) -> Profile:
    return await service.reject(user_id, dto.reason)


@admin_router.get("/community-requests", response_model=list[CommunityRequest])
async def list_community_requests(
    request_status: Optional[RequestStatus] = Query(None, alias="status"),
    service: CommunityRequestService = Depends(get_community_request_service),
) -> list[CommunityRequest]:
    return await service.list_requests(status=request_status)


@admin_router.post("/community-requests/{request_id}/review", response_model=CommunityRequest)
async def review_community_request(
    request_id: UUID,
    dto: CommunityRequestReviewDTO,
    service: CommunityRequestService = Depends(get_community_request_service),
) -> CommunityRequest:
    """Одобрить или отклонить заявку на сообщество."""
    return await service.review(request_id, dto)


routers = [
    feed_router,
    rides_router,
    profiles_router,
    communities_router,
    community_requests_router,
    reviews_router,
    admin_router,
]
