# src/common/errors.py
"""
Доменные исключения доски поездок.
Все ошибки восстановимы и передаются вызывающему коду с текстом для пользователя.
"""

from __future__ import annotations

from typing import Any


class RideBoardError(Exception):
    """Базовое доменное исключение."""

    error_code: str = "ride_board_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(RideBoardError):
    """Объявление, профиль, сообщество или отзыв не найдены."""
    error_code = "not_found"


class UnauthorizedError(RideBoardError):
    """Вызывающий не владелец ресурса или не администратор."""
    error_code = "unauthorized"


class ValidationError(RideBoardError):
    """Некорректные входные данные."""
    error_code = "validation_error"


class InvalidStateTransitionError(RideBoardError):
    """Переход машины состояний запрещён из текущего состояния."""
    error_code = "invalid_state_transition"


class AlreadyVerifiedError(InvalidStateTransitionError):
    """Удостоверение уже подтверждено, повторная отправка невозможна."""
    error_code = "already_verified"


class ConflictError(RideBoardError):
    """Нарушение уникальности (повторное вступление, повторный отзыв и т.п.)."""
    error_code = "conflict"


class InternalError(RideBoardError):
    """Непредвиденная ошибка хранилища."""
    error_code = "internal_error"


class AuthenticationRequiredError(RideBoardError):
    """Операция требует идентифицированного пользователя."""
    error_code = "authentication_required"
