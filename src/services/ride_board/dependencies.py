# src/services/ride_board/dependencies.py
"""
Dependency Injection для Ride Board Service.
Инфраструктура и сервисы создаются один раз, идентичность и права
администратора определяются по заголовкам от внешнего провайдера сессий.
"""

from __future__ import annotations

import hmac
from typing import TYPE_CHECKING, Optional

from fastapi import Header

from src.common.errors import AuthenticationRequiredError, UnauthorizedError

if TYPE_CHECKING:
    from src.core.communities.service import CommunityRequestService, CommunityService
    from src.core.feed.service import FeedAssembler
    from src.core.profiles.service import ProfileService
    from src.core.reviews.service import ReviewService
    from src.core.rides.service import RideService
    from src.core.verification.service import VerificationService
    from src.infra.database import DatabaseManager
    from src.infra.event_bus import EventBus
    from src.infra.redis_client import RedisClient


# Синглтоны для инфраструктуры
_db: "DatabaseManager | None" = None
_redis: "RedisClient | None" = None
_event_bus: "EventBus | None" = None

# Синглтоны для сервисов
_ride_service: "RideService | None" = None
_feed_assembler: "FeedAssembler | None" = None
_profile_service: "ProfileService | None" = None
_verification_service: "VerificationService | None" = None
_community_service: "CommunityService | None" = None
_community_request_service: "CommunityRequestService | None" = None
_review_service: "ReviewService | None" = None


async def init_dependencies() -> None:
    """Подключает БД, Redis и RabbitMQ при старте приложения."""
    global _db, _redis, _event_bus
    from src.infra.database import get_db as infra_db, init_db
    from src.infra.event_bus import get_event_bus as infra_event_bus, init_event_bus
    from src.infra.redis_client import get_redis as infra_redis, init_redis

    await init_db()
    await init_redis()
    await init_event_bus()

    _db = infra_db()
    _redis = infra_redis()
    _event_bus = infra_event_bus()


async def close_dependencies() -> None:
    """Сбрасывает сервисы и закрывает подключения при остановке."""
    global _db, _redis, _event_bus
    global _ride_service, _feed_assembler, _profile_service, _verification_service
    global _community_service, _community_request_service, _review_service
    from src.infra.database import close_db
    from src.infra.event_bus import close_event_bus
    from src.infra.redis_client import close_redis

    _ride_service = None
    _feed_assembler = None
    _profile_service = None
    _verification_service = None
    _community_service = None
    _community_request_service = None
    _review_service = None

    await close_event_bus()
    await close_redis()
    await close_db()
    _db = _redis = _event_bus = None


# =============================================================================
# ИНФРАСТРУКТУРА
# =============================================================================

def get_db() -> "DatabaseManager":
    """Получить менеджер базы данных."""
    if _db is None:
        raise RuntimeError("База данных не инициализирована. Вызовите init_dependencies()")
    return _db


def get_redis() -> "RedisClient":
    """Получить клиент Redis."""
    if _redis is None:
        raise RuntimeError("Redis не инициализирован. Вызовите init_dependencies()")
    return _redis


def get_event_bus() -> "EventBus":
    """Получить шину событий."""
    if _event_bus is None:
        raise RuntimeError("EventBus не инициализирован. Вызовите init_dependencies()")
    return _event_bus


# =============================================================================
# СЕРВИСЫ
# =============================================================================

def get_ride_service() -> "RideService":
    """Получить сервис объявлений."""
    global _ride_service
    if _ride_service is None:
        from src.core.rides.service import RideService
        _ride_service = RideService(db=get_db(), event_bus=get_event_bus())
    return _ride_service


def get_feed_assembler() -> "FeedAssembler":
    """Получить сборщик ленты."""
    global _feed_assembler
    if _feed_assembler is None:
        from src.core.feed.service import FeedAssembler
        _feed_assembler = FeedAssembler(db=get_db())
    return _feed_assembler


def get_profile_service() -> "ProfileService":
    """Получить сервис профилей."""
    global _profile_service
    if _profile_service is None:
        from src.core.profiles.service import ProfileService
        _profile_service = ProfileService(db=get_db(), redis=get_redis())
    return _profile_service


def get_verification_service() -> "VerificationService":
    """Получить сервис проверки удостоверений."""
    global _verification_service
    if _verification_service is None:
        from src.core.verification.service import VerificationService
        _verification_service = VerificationService(
            db=get_db(),
            redis=get_redis(),
            event_bus=get_event_bus(),
        )
    return _verification_service


def get_community_service() -> "CommunityService":
    """Получить сервис сообществ."""
    global _community_service
    if _community_service is None:
        from src.core.communities.service import CommunityService
        _community_service = CommunityService(db=get_db(), event_bus=get_event_bus())
    return _community_service


def get_community_request_service() -> "CommunityRequestService":
    """Получить сервис заявок на сообщества."""
    global _community_request_service
    if _community_request_service is None:
        from src.core.communities.service import CommunityRequestService
        _community_request_service = CommunityRequestService(
            db=get_db(),
            event_bus=get_event_bus(),
            community_service=get_community_service(),
        )
    return _community_request_service


def get_review_service() -> "ReviewService":
    """Получить сервис отзывов."""
    global _review_service
    if _review_service is None:
        from src.core.reviews.service import ReviewService
        _review_service = ReviewService(db=get_db(), event_bus=get_event_bus())
    return _review_service


# =============================================================================
# ИДЕНТИЧНОСТЬ И ПРАВА
# =============================================================================

def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Пользователь из заголовка X-User-Id (None для анонимного запроса)."""
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


def require_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """
    Пользователь, обязательный для изменяющих операций.

    Raises:
        AuthenticationRequiredError: заголовок не передан
    """
    user_id = get_current_user_id(x_user_id)
    if user_id is None:
        raise AuthenticationRequiredError("Войдите, чтобы выполнить это действие")
    return user_id


def require_admin(x_admin_key: Optional[str] = Header(None)) -> None:
    """
    Проверка прав администратора по ключу X-Admin-Key.

    Raises:
        UnauthorizedError: ключ не передан, не настроен или не совпадает
    """
    from src.config import settings

    expected = settings.security.ADMIN_API_KEY
    if not expected or not x_admin_key or not hmac.compare_digest(x_admin_key.encode(), expected.encode()):
        raise UnauthorizedError("Требуются права администратора")
