# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class RideType(str, Enum):
    """Тип объявления о поездке."""
    OFFERING = "offering"
    SEEKING = "seeking"


class GenderPreference(str, Enum):
    """С кем водитель или пассажир готов ехать."""
    GIRLS_ONLY = "girls_only"
    BOYS_ONLY = "boys_only"
    BOTH = "both"


class Gender(str, Enum):
    """Пол пользователя в профиле."""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class VerificationStatus(str, Enum):
    """Состояния проверки удостоверения личности (NIC)."""
    UNVERIFIED = "unverified"
    PENDING = "pending"
    REJECTED = "rejected"
    VERIFIED = "verified"


class SortBy(str, Enum):
    """Порядок сортировки ленты."""
    NEWEST = "newest"
    OLDEST = "oldest"
    DATE = "date"


class FilterType(str, Enum):
    """Дополнительный фильтр ленты."""
    ALL = "all"
    VERIFIED = "verified"
    GIRLS_ONLY = "girls_only"
    BOYS_ONLY = "boys_only"
    BOTH = "both"


class CommunityScopeKind(str, Enum):
    """Область видимости ленты."""
    PUBLIC = "public"
    ALL = "all"
    COMMUNITY = "community"


class RequestStatus(str, Enum):
    """Статусы заявки на создание сообщества."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewDecision(str, Enum):
    """Решение администратора по заявке."""
    APPROVE = "approve"
    REJECT = "reject"


WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

DEFAULT_REJECTION_REASON = "Изображения удостоверения не прошли проверку. Загрузите чёткие фото."
