# src/common/clock.py
"""
Источник текущего времени.
Сервисы получают часы через конструктор, чтобы границы истечения проверялись детерминированно.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Часы, возвращающие aware-время в UTC."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Системные часы."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Часы с заданным временем (тесты, воспроизводимые сценарии)."""

    def __init__(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        self._moment = moment

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        """Переводит часы."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        self._moment = moment
