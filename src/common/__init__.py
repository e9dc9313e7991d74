# src/common/__init__.py
"""
Общие утилиты, константы, логгер и доменные исключения.
"""

from src.common.logger import get_logger, log_info, log_error, log_warning, log_debug
from src.common.constants import TypeMsg
from src.common.clock import Clock, SystemClock
from src.common.errors import (
    RideBoardError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    InvalidStateTransitionError,
    AlreadyVerifiedError,
    ConflictError,
    InternalError,
    AuthenticationRequiredError,
)

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "TypeMsg",
    "Clock",
    "SystemClock",
    "RideBoardError",
    "NotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "InvalidStateTransitionError",
    "AlreadyVerifiedError",
    "ConflictError",
    "InternalError",
    "AuthenticationRequiredError",
]
