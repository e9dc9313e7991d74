# src/common/validators.py
"""
Проверка и нормализация пользовательского ввода.
"""

from __future__ import annotations

import re

# 92XXXXXXXXXX или 0XXXXXXXXXX
PHONE_PATTERN = re.compile(r"(92[0-9]{10}|0[0-9]{10})")
PHONE_NOISE = re.compile(r"[\s\-()+]")

# HH:MM, 24 часа
RIDE_TIME_PATTERN = re.compile(r"([0-1][0-9]|2[0-3]):[0-5][0-9]")

# 12345-1234567-1, дефисы необязательны
NIC_NUMBER_PATTERN = re.compile(r"[0-9]{5}-?[0-9]{7}-?[0-9]")
NIC_NUMBER_MIN_LENGTH = 13
NIC_NUMBER_MAX_LENGTH = 15


def normalize_phone(raw: str) -> str:
    """
    Проверяет номер и приводит его к виду 92XXXXXXXXXX.

    Raises:
        ValueError: если номер не похож на мобильный
    """
    cleaned = PHONE_NOISE.sub("", raw)
    if not PHONE_PATTERN.fullmatch(cleaned):
        raise ValueError("Введите корректный мобильный номер (например, 923001234567 или 03001234567)")
    if cleaned.startswith("0"):
        return "92" + cleaned[1:]
    return cleaned


def validate_ride_time(value: str) -> str:
    """Проверяет формат времени HH:MM."""
    if not isinstance(value, str) or not RIDE_TIME_PATTERN.fullmatch(value):
        raise ValueError("Неверный формат времени (HH:MM)")
    return value


def is_valid_nic_number(value: str) -> bool:
    """Проверяет номер удостоверения по длине и формату."""
    value = value.strip()
    if not NIC_NUMBER_MIN_LENGTH <= len(value) <= NIC_NUMBER_MAX_LENGTH:
        return False
    return bool(NIC_NUMBER_PATTERN.fullmatch(value))


def require_text(value: object, field_name: str) -> str:
    """Возвращает обрезанную строку или бросает ValueError, если это не строка или она пустая."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Поле {field_name} обязательно")
    return value.strip()
