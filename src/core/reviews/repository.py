# src/core/reviews/repository.py
"""
Репозиторий отзывов.
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from src.common.errors import ConflictError, InternalError
from src.common.logger import log_error
from src.core.reviews.models import Review
from src.infra.database import DatabaseManager, is_unique_violation

REVIEW_FIELDS = "id, ride_id, reviewer_id, driver_id, rating, comment, created_at, updated_at"


class ReviewRepository:
    """Репозиторий отзывов. Один отзыв на пару (объявление, автор)."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(self, review: Review) -> Review:
        """
        Сохраняет отзыв.

        Raises:
            ConflictError: автор уже оставил отзыв к этому объявлению
        """
        try:
            row = await self._db.fetchrow(
                f"""
                INSERT INTO reviews ({REVIEW_FIELDS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING {REVIEW_FIELDS}
                """,
                review.id,
                review.ride_id,
                review.reviewer_id,
                review.driver_id,
                review.rating,
                review.comment,
                review.created_at,
                review.updated_at,
            )
        except Exception as e:
            if is_unique_violation(e):
                raise ConflictError(
                    "Вы уже оставили отзыв к этой поездке",
                    details={"ride_id": str(review.ride_id)},
                ) from e
            await log_error(f"Ошибка сохранения отзыва к {review.ride_id}: {e}")
            raise InternalError("Не удалось сохранить отзыв") from e

        return Review.model_validate(dict(row)) if row is not None else review

    async def get_by_id(self, review_id: UUID) -> Optional[Review]:
        """Отзыв или None."""
        row = await self._fetchrow(
            f"SELECT {REVIEW_FIELDS} FROM reviews WHERE id = $1",
            review_id,
        )
        return Review.model_validate(dict(row)) if row is not None else None

    async def find_by_reviewer(self, ride_id: UUID, reviewer_id: str) -> Optional[Review]:
        """Отзыв автора к объявлению или None."""
        row = await self._fetchrow(
            f"SELECT {REVIEW_FIELDS} FROM reviews WHERE ride_id = $1 AND reviewer_id = $2",
            ride_id,
            reviewer_id,
        )
        return Review.model_validate(dict(row)) if row is not None else None

    async def update(self, review: Review) -> Optional[Review]:
        """Сохраняет оценку и комментарий."""
        row = await self._fetchrow(
            f"""
            UPDATE reviews SET rating = $3, comment = $4, updated_at = $5
            WHERE id = $1 AND reviewer_id = $2
            RETURNING {REVIEW_FIELDS}
            """,
            review.id,
            review.reviewer_id,
            review.rating,
            review.comment,
            review.updated_at,
        )
        return Review.model_validate(dict(row)) if row is not None else None

    async def list_reviews(
        self,
        ride_id: Optional[UUID] = None,
        driver_id: Optional[str] = None,
    ) -> list[Review]:
        """Отзывы к объявлению или о владельце, новые первыми."""
        conditions: list[str] = []
        args: list[Any] = []
        if ride_id is not None:
            args.append(ride_id)
            conditions.append(f"ride_id = ${len(args)}")
        if driver_id is not None:
            args.append(driver_id)
            conditions.append(f"driver_id = ${len(args)}")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        try:
            rows = await self._db.fetch(
                f"SELECT {REVIEW_FIELDS} FROM reviews {where} ORDER BY created_at DESC",
                *args,
            )
        except Exception as e:
            await log_error(f"Ошибка получения отзывов: {e}")
            raise InternalError("Не удалось загрузить отзывы") from e
        return [Review.model_validate(dict(row)) for row in rows]

    async def _fetchrow(self, query: str, *args: Any) -> Any:
        try:
            return await self._db.fetchrow(query, *args)
        except Exception as e:
            await log_error(f"Ошибка БД (отзывы): {e}")
            raise InternalError("Ошибка хранилища отзывов") from e
