# src/core/reviews/service.py
"""
Сервис отзывов о поездках.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from src.common.clock import Clock, SystemClock
from src.common.constants import TypeMsg
from src.common.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from src.common.logger import log_error, log_info
from src.core.reviews.models import Review, ReviewCreateDTO, ReviewUpdateDTO
from src.core.reviews.repository import ReviewRepository
from src.core.rides.repository import RideRepository
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


class ReviewService:
    """Отзывы: один на пару (объявление, автор), о чужом объявлении."""

    def __init__(
        self,
        db: DatabaseManager,
        event_bus: EventBus,
        clock: Clock | None = None,
    ) -> None:
        self._repo = ReviewRepository(db)
        self._ride_repo = RideRepository(db)
        self._event_bus = event_bus
        self._clock = clock or SystemClock()

    async def create_review(self, reviewer_id: str, dto: ReviewCreateDTO) -> Review:
        """
        Оставляет отзыв о владельце объявления.

        Raises:
            NotFoundError: объявления нет
            ValidationError: отзыв о собственном объявлении
            ConflictError: отзыв уже есть
        """
        ride = await self._ride_repo.get_by_id(dto.ride_id)
        if ride is None:
            raise NotFoundError("Объявление не найдено", details={"ride_id": str(dto.ride_id)})
        if ride.user_id == reviewer_id:
            raise ValidationError("Нельзя оставить отзыв о своей поездке")
        if await self._repo.find_by_reviewer(dto.ride_id, reviewer_id) is not None:
            raise ConflictError("Вы уже оставили отзыв к этой поездке", details={"ride_id": str(dto.ride_id)})

        now = self._clock.now()
        review = await self._repo.create(
            Review(
                ride_id=dto.ride_id,
                reviewer_id=reviewer_id,
                driver_id=ride.user_id,
                rating=dto.rating,
                comment=dto.comment,
                created_at=now,
                updated_at=now,
            )
        )

        await log_info(
            f"Отзыв {review.id} ({review.rating}/5) к объявлению {review.ride_id} от {reviewer_id}",
            type_msg=TypeMsg.INFO,
        )
        try:
            await self._event_bus.publish(
                DomainEvent(
                    event_type=EventTypes.REVIEW_CREATED,
                    payload={
                        "review_id": str(review.id),
                        "ride_id": str(review.ride_id),
                        "driver_id": review.driver_id,
                        "rating": review.rating,
                    },
                )
            )
        except Exception as e:
            await log_error(f"Не удалось опубликовать {EventTypes.REVIEW_CREATED}: {e}")
        return review

    async def update_review(self, reviewer_id: str, review_id: UUID, dto: ReviewUpdateDTO) -> Review:
        """
        Меняет оценку или комментарий; разрешено только автору.

        Raises:
            NotFoundError: отзыва нет
            UnauthorizedError: отзыв оставил другой пользователь
        """
        review = await self._repo.get_by_id(review_id)
        if review is None:
            raise NotFoundError("Отзыв не найден", details={"review_id": str(review_id)})
        if review.reviewer_id != reviewer_id:
            raise UnauthorizedError("Изменять отзыв может только его автор", details={"review_id": str(review_id)})

        changes = dto.model_dump(exclude_unset=True)
        if changes.get("rating") is None:
            changes.pop("rating", None)
        if not changes:
            return review

        saved = await self._repo.update(review.model_copy(update={**changes, "updated_at": self._clock.now()}))
        if saved is None:
            raise NotFoundError("Отзыв не найден", details={"review_id": str(review_id)})
        return saved

    async def list_reviews(
        self,
        ride_id: Optional[UUID] = None,
        driver_id: Optional[str] = None,
    ) -> list[Review]:
        """
        Отзывы к объявлению или о водителе.

        Raises:
            ValidationError: не указан ни ride_id, ни driver_id
        """
        if ride_id is None and driver_id is None:
            raise ValidationError("Укажите ride_id или driver_id")
        return await self._repo.list_reviews(ride_id=ride_id, driver_id=driver_id)
