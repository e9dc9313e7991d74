# tests/config/test_loader.py
"""
Тесты для модуля загрузки конфигурации.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.config.loader import (
    DatabaseSettings,
    DeploymentSettings,
    DomainSettings,
    LoggingSettings,
    RabbitMQSettings,
    RedisSettings,
    RedisTTLSettings,
    SecuritySettings,
    Settings,
    SystemSettings,
    build_section,
    get_config_path,
    get_project_root,
    load_config_json,
)


class TestGetProjectRoot:
    """Тесты для функции get_project_root."""

    def test_returns_path_object(self) -> None:
        assert isinstance(get_project_root(), Path)

    def test_root_contains_src_and_config(self) -> None:
        """Проверяет наличие директорий src и config в корне."""
        root = get_project_root()
        assert (root / "src").exists()
        assert (root / "config").exists()


class TestGetConfigPath:
    """Тесты для функции get_config_path."""

    def test_path_in_config_directory(self) -> None:
        path = get_config_path()
        assert path.name == "config.json"
        assert path.parent.name == "config"


class TestLoadConfigJson:
    """Тесты для функции load_config_json."""

    def test_contains_required_keys(self) -> None:
        """Проверяет наличие обязательных ключей."""
        config = load_config_json()

        for key in ("PROJECT_NAME", "VERSION", "TIMEZONE", "FEED_DEFAULT_LIMIT", "FEED_MAX_LIMIT"):
            assert key in config, f"Отсутствует ключ: {key}"

    def test_raises_file_not_found(self, tmp_path: Path) -> None:
        """Проверяет исключение при отсутствии файла."""
        with patch("src.config.loader.get_config_path") as mock_path:
            mock_path.return_value = tmp_path / "nonexistent.json"

            with pytest.raises(FileNotFoundError):
                load_config_json()


class TestSectionDefaults:
    """Тесты для значений по умолчанию секций."""

    def test_system(self) -> None:
        settings = SystemSettings()
        assert settings.PROJECT_NAME == "ride_board"
        assert settings.ENVIRONMENT == "development"

    def test_deployment(self) -> None:
        settings = DeploymentSettings()
        assert settings.RIDE_BOARD_PORT == 8080
        assert settings.CORS_ORIGINS == ["*"]

    def test_logging(self) -> None:
        settings = LoggingSettings()
        assert settings.LOG_FORMAT == "colored"
        assert settings.LOG_BACKUP_COUNT == 5

    def test_domain(self) -> None:
        """Граница суток считается по Карачи."""
        settings = DomainSettings()
        assert settings.TIMEZONE == "Asia/Karachi"
        assert settings.FEED_DEFAULT_LIMIT <= settings.FEED_MAX_LIMIT
        assert settings.DESCRIPTION_MAX_LENGTH == 200

    def test_redis_ttl(self) -> None:
        assert RedisTTLSettings().PROFILE_TTL == 300


class TestSecrets:
    """Тесты для секретов из переменных окружения."""

    def test_admin_key_from_env(self) -> None:
        with patch.dict("os.environ", {"ADMIN_API_KEY": "secret-key"}):
            assert SecuritySettings(ADMIN_API_KEY="").ADMIN_API_KEY == "secret-key"

    def test_admin_key_explicit(self) -> None:
        assert SecuritySettings(ADMIN_API_KEY="explicit").ADMIN_API_KEY == "explicit"

    def test_db_password_from_env(self) -> None:
        with patch.dict("os.environ", {"DB_PASSWORD": "env_pass"}):
            assert DatabaseSettings(DB_PASSWORD="").DB_PASSWORD == "env_pass"

    def test_rabbitmq_password_env_wins(self) -> None:
        with patch.dict("os.environ", {"RABBITMQ_PASSWORD": "env_rabbit"}):
            assert RabbitMQSettings(RABBITMQ_PASSWORD="guest").RABBITMQ_PASSWORD == "env_rabbit"


class TestConnectionStrings:
    """Тесты для строк подключения."""

    def test_database_dsn(self) -> None:
        settings = DatabaseSettings(
            DB_HOST="db",
            DB_PORT=5433,
            DB_NAME="rides",
            DB_USER="board",
            DB_PASSWORD="pw",
        )
        assert settings.dsn == "postgresql://board:pw@db:5433/rides"

    def test_redis_url_without_password(self) -> None:
        with patch.dict("os.environ", {"REDIS_PASSWORD": ""}):
            settings = RedisSettings(REDIS_HOST="cache", REDIS_DB=2, REDIS_PASSWORD="")
        assert settings.url == "redis://cache:6379/2"

    def test_redis_url_with_password(self) -> None:
        settings = RedisSettings(REDIS_PASSWORD="pw")
        assert settings.url == "redis://:pw@localhost:6379/0"

    def test_rabbitmq_url(self) -> None:
        with patch.dict("os.environ", {"RABBITMQ_PASSWORD": ""}):
            settings = RabbitMQSettings(RABBITMQ_USER="u", RABBITMQ_PASSWORD="p", RABBITMQ_HOST="mq")
        assert settings.url == "amqp://u:p@mq:5672/"


class TestSettingsFromConfigJson:
    """Тесты для сборки настроек из config.json."""

    def test_maps_sections(self, mock_config: dict[str, Any]) -> None:
        with patch("src.config.loader.load_config_json", return_value=mock_config), \
                patch.dict("os.environ", {"ADMIN_API_KEY": "from_env"}, clear=False):
            settings = Settings.from_config_json()

        assert settings.system.PROJECT_NAME == "ride_board_test"
        assert settings.deployment.RIDE_BOARD_PORT == 8090
        assert settings.domain.FEED_DEFAULT_LIMIT == 10
        assert settings.domain.FEED_MAX_LIMIT == 50
        assert settings.redis_ttl.PROFILE_TTL == 60
        assert settings.rabbitmq.RABBITMQ_EXCHANGE == "ride_board.test"
        assert settings.security.ADMIN_API_KEY == "from_env"

    def test_env_overrides_service_address(self, mock_config: dict[str, Any]) -> None:
        """Адрес БД из окружения важнее config.json."""
        with patch("src.config.loader.load_config_json", return_value=mock_config), \
                patch.dict("os.environ", {"DB_HOST": "postgres", "DB_PORT": "6543"}):
            settings = Settings.from_config_json()

        assert settings.database.DB_HOST == "postgres"
        assert settings.database.DB_PORT == 6543
        assert settings.database.DB_NAME == "ride_board_test"

    def test_missing_keys_use_defaults(self) -> None:
        with patch("src.config.loader.load_config_json", return_value={"PROJECT_NAME": "partial"}), \
                patch.dict("os.environ", {"DB_HOST": "", "RIDE_BOARD_PORT": ""}):
            settings = Settings.from_config_json()

        assert settings.system.PROJECT_NAME == "partial"
        assert settings.database.DB_HOST == "localhost"
        assert settings.redis_ttl.PROFILE_TTL == 300



class TestBuildSection:
    """Тесты для раскладки плоского JSON по секциям."""

    def test_picks_only_own_keys(self) -> None:
        section = build_section(RedisTTLSettings, {"PROFILE_TTL": 42, "DB_HOST": "db"})
        assert section.PROFILE_TTL == 42

    def test_empty_env_value_ignored(self) -> None:
        with patch.dict("os.environ", {"TIMEZONE": ""}):
            section = build_section(DomainSettings, {"TIMEZONE": "Europe/Berlin"})
        assert section.TIMEZONE == "Europe/Berlin"

    def test_non_overridable_key_stays_from_file(self) -> None:
        """FEED_MAX_LIMIT не читается из окружения."""
        with patch.dict("os.environ", {"FEED_MAX_LIMIT": "5"}):
            section = build_section(DomainSettings, {"FEED_MAX_LIMIT": 80})
        assert section.FEED_MAX_LIMIT == 80


class TestDomainValidation:
    """Тесты для проверки правил доски."""

    def test_unknown_timezone(self) -> None:
        with pytest.raises(ValidationError, match="Неизвестный часовой пояс"):
            DomainSettings(TIMEZONE="Mars/Olympus")

    def test_default_limit_above_max(self) -> None:
        with pytest.raises(ValidationError, match="FEED_DEFAULT_LIMIT"):
            DomainSettings(FEED_DEFAULT_LIMIT=50, FEED_MAX_LIMIT=10)

    @pytest.mark.parametrize("field", ["FEED_DEFAULT_LIMIT", "FEED_MAX_LIMIT"])
    def test_limits_positive(self, field: str) -> None:
        with pytest.raises(ValidationError):
            DomainSettings(**{field: 0})


class TestLoadConfigJsonFile:
    """Тесты для чтения файла конфигурации."""

    def test_comment_keys_dropped(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"_comment_domain": "Доска поездок", "TIMEZONE": "Asia/Karachi"}))

        with patch("src.config.loader.get_config_path", return_value=config_file):
            assert load_config_json() == {"TIMEZONE": "Asia/Karachi"}
