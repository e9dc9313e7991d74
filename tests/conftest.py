# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("ADMIN_API_KEY", "test_admin_key")

from src.common.clock import FixedClock  # noqa: E402
from src.core.rides.expiry import compute_expires_at  # noqa: E402

TZ = "Asia/Karachi"

# 2025-03-10 12:00 по Карачи (UTC+5)
NOW = datetime(2025, 3, 10, 7, 0, tzinfo=timezone.utc)
TODAY = date(2025, 3, 10)


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "PROJECT_NAME": "ride_board_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "LOG_LEVEL": "DEBUG",
        "ENVIRONMENT": "test",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "colored",
        "RIDE_BOARD_HOST": "127.0.0.1",
        "RIDE_BOARD_PORT": 8090,
        "CORS_ORIGINS": ["http://localhost:3000"],
        "TIMEZONE": TZ,
        "FEED_DEFAULT_LIMIT": 10,
        "FEED_MAX_LIMIT": 50,
        "DESCRIPTION_MAX_LENGTH": 200,
        "REVIEW_COMMENT_MAX_LENGTH": 500,
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "ride_board_test",
        "DB_USER": "postgres",
        "DB_PASSWORD": "test_password",
        "DB_MIN_POOL_SIZE": 2,
        "DB_MAX_POOL_SIZE": 5,
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_NAMESPACE": "ride_board_test",
        "PROFILE_TTL": 60,
        "RABBITMQ_HOST": "localhost",
        "RABBITMQ_EXCHANGE": "ride_board.test",
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.get_model = AsyncMock(return_value=None)
    redis.set_model = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=None)
    event_bus.is_connected = True
    return event_bus


@pytest.fixture
def clock() -> FixedClock:
    """Часы, стоящие на NOW."""
    return FixedClock(NOW)


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

@pytest.fixture
def make_ride_row() -> Callable[..., dict[str, Any]]:
    """Фабрика строк объявления вместе с данными владельца (как из RIDES_WITH_OWNER)."""

    def factory(**overrides: Any) -> dict[str, Any]:
        ride_date = overrides.pop("ride_date", TODAY)
        created_at = overrides.pop("created_at", NOW - timedelta(hours=1))
        row = {
            "id": uuid4(),
            "user_id": "user-a",
            "type": "offering",
            "gender_preference": "both",
            "start_location": "Gulberg",
            "end_location": "DHA Phase 5",
            "ride_date": ride_date,
            "ride_time": "18:00",
            "seats_available": 3,
            "description": "Ежедневно после работы",
            "phone": "923001234567",
            "community_id": None,
            "recurring_days": [],
            "expires_at": compute_expires_at(ride_date, TZ),
            "is_archived": False,
            "created_at": created_at,
            "updated_at": created_at,
            "owner_disables_auto_expiry": False,
            "owner_nic_verified": False,
            "owner_name": "Ali",
        }
        row.update(overrides)
        return row

    return factory


@pytest.fixture
def make_profile_row() -> Callable[..., dict[str, Any]]:
    """Фабрика строк таблицы profiles."""

    def factory(**overrides: Any) -> dict[str, Any]:
        row = {
            "user_id": "user-a",
            "full_name": "Ali Raza",
            "phone": "923001234567",
            "avatar_url": "https://cdn.example.com/a.png",
            "gender": "male",
            "disable_auto_expiry": False,
            "nic_status": "unverified",
            "nic_number": None,
            "nic_front": None,
            "nic_back": None,
            "nic_front_image_url": None,
            "nic_back_image_url": None,
            "nic_rejection_reason": None,
            "nic_rejected_at": None,
            "nic_submitted_at": None,
            "nic_verified_at": None,
            "created_at": NOW - timedelta(days=30),
            "updated_at": NOW - timedelta(days=1),
        }
        row.update(overrides)
        return row

    return factory


@pytest.fixture
def make_community_row() -> Callable[..., dict[str, Any]]:
    """Фабрика строк таблицы communities."""

    def factory(**overrides: Any) -> dict[str, Any]:
        row = {
            "id": uuid4(),
            "name": "Lahore Commuters",
            "description": "Поездки по Лахору",
            "created_by": "user-x",
            "created_at": NOW - timedelta(days=2),
            "updated_at": NOW - timedelta(days=2),
        }
        row.update(overrides)
        return row

    return factory


@pytest.fixture
def community_id() -> UUID:
    return UUID("6f1c2a4e-8b1d-4a55-9c1e-2f1b8d7a9e01")
