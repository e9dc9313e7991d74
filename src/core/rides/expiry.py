# src/core/rides/expiry.py
"""
Политика истечения объявлений.

Объявление активно, пока не архивировано и либо владелец отключил автоистечение,
либо expires_at ещё в будущем. Статус вычисляется при каждом чтении и нигде не хранится,
поэтому переключение настройки владельца сразу меняет классификацию старых объявлений.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Protocol
from zoneinfo import ZoneInfo


class Expirable(Protocol):
    """Всё, что нужно политике от объявления."""

    is_archived: bool
    expires_at: datetime


def compute_expires_at(ride_date: date, tz_name: str) -> datetime:
    """
    Граница истечения: 00:00 следующего за ride_date дня в часовом поясе сервиса.
    Время поездки границу не сдвигает. Результат в UTC.
    """
    tz = ZoneInfo(tz_name)
    next_midnight = datetime.combine(ride_date + timedelta(days=1), time.min, tzinfo=tz)
    return next_midnight.astimezone(timezone.utc)


def today_in(tz_name: str, now: datetime) -> date:
    """Календарная дата момента now в часовом поясе сервиса."""
    return now.astimezone(ZoneInfo(tz_name)).date()


def is_active(ride: Expirable, owner_disables_auto_expiry: bool, now: datetime) -> bool:
    """Активно ли объявление в момент now."""
    if ride.is_archived:
        return False
    return owner_disables_auto_expiry or ride.expires_at > now


def is_expired_or_archived(ride: Expirable, now: datetime) -> bool:
    """Архивировано или прошло границу истечения (без учёта настройки владельца)."""
    return ride.is_archived or ride.expires_at <= now


def is_past_listing(ride: Expirable, owner_disables_auto_expiry: bool, now: datetime) -> bool:
    """
    Прошлое объявление для выборки «последнее истёкшее».
    Никогда не пересекается с is_active: при отключённом автоистечении
    неархивированное объявление остаётся активным, а не прошлым.
    """
    return is_expired_or_archived(ride, now) and not is_active(ride, owner_disables_auto_expiry, now)
