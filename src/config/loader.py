# src/config/loader.py
"""
Загрузчик конфигурации доски поездок.

Значения берутся из config/config.json (ключи _comment_* пропускаются),
секреты и адреса сервисов переопределяются переменными окружения и файлом .env.
Каждая секция настроек сама перечисляет свои ключи: плоский JSON раскладывается
по секциям по именам полей моделей.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, TypeVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

SectionT = TypeVar("SectionT", bound=BaseModel)

# Секреты: в config.json обычно пусто, реальное значение приходит из окружения
SECRET_KEYS = frozenset({"ADMIN_API_KEY", "DB_PASSWORD", "REDIS_PASSWORD", "RABBITMQ_PASSWORD"})

# Несекретные ключи, которые docker-compose/k8s переопределяют окружением
ENV_OVERRIDABLE_KEYS = frozenset({
    "ENVIRONMENT",
    "TIMEZONE",
    "RIDE_BOARD_HOST",
    "RIDE_BOARD_PORT",
    "DB_HOST",
    "DB_PORT",
    "DB_NAME",
    "DB_USER",
    "REDIS_HOST",
    "REDIS_PORT",
    "RABBITMQ_HOST",
    "RABBITMQ_PORT",
    "RABBITMQ_USER",
})


# =============================================================================
# ФАЙЛ КОНФИГУРАЦИИ
# =============================================================================

def get_project_root() -> Path:
    """Корень репозитория (каталог с src/ и config/)."""
    return Path(__file__).resolve().parent.parent.parent


def get_config_path() -> Path:
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Читает config.json без ключей-комментариев."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    return {k: v for k, v in raw.items() if not k.startswith("_comment_")}


def _env_secret(name: str, value: str) -> str:
    """Пустой секрет заменяется значением из окружения."""
    return value or os.getenv(name, "")


# =============================================================================
# СЕКЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "ride_board"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"


class DeploymentSettings(BaseModel):
    """HTTP API."""
    RIDE_BOARD_HOST: str = "0.0.0.0"
    RIDE_BOARD_PORT: int = 8080
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    """Логирование."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = True
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5


class DomainSettings(BaseModel):
    """
    Правила доски поездок.
    TIMEZONE задаёт границу суток: объявление истекает в 00:00 следующего за датой поездки дня.
    """
    TIMEZONE: str = "Asia/Karachi"
    FEED_DEFAULT_LIMIT: int = Field(20, ge=1)
    FEED_MAX_LIMIT: int = Field(100, ge=1)
    DESCRIPTION_MAX_LENGTH: int = 200
    REVIEW_COMMENT_MAX_LENGTH: int = 500

    @field_validator("TIMEZONE")
    @classmethod
    def known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Неизвестный часовой пояс: {v}") from e
        return v

    @model_validator(mode="after")
    def default_limit_within_max(self) -> DomainSettings:
        if self.FEED_DEFAULT_LIMIT > self.FEED_MAX_LIMIT:
            raise ValueError("FEED_DEFAULT_LIMIT не может превышать FEED_MAX_LIMIT")
        return self


class SecuritySettings(BaseModel):
    """Доступ администратора."""
    ADMIN_API_KEY: str = ""

    @field_validator("ADMIN_API_KEY", mode="before")
    @classmethod
    def from_env(cls, v: str) -> str:
        return _env_secret("ADMIN_API_KEY", v)


class DatabaseSettings(BaseModel):
    """PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "ride_board"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def from_env(cls, v: str) -> str:
        return _env_secret("DB_PASSWORD", v)

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


class RedisSettings(BaseModel):
    """Redis (кэш профилей)."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "ride_board"
    REDIS_MAX_CONNECTIONS: int = 50

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def from_env(cls, v: str) -> str:
        return _env_secret("REDIS_PASSWORD", v)

    @property
    def url(self) -> str:
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RedisTTLSettings(BaseModel):
    """Время жизни записей кэша (секунды)."""
    PROFILE_TTL: int = 300


class RabbitMQSettings(BaseModel):
    """RabbitMQ (доменные события)."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "ride_board.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @field_validator("RABBITMQ_PASSWORD", mode="before")
    @classmethod
    def from_env(cls, v: str) -> str:
        # У guest есть значение по умолчанию, поэтому окружение важнее файла
        return os.getenv("RABBITMQ_PASSWORD", "") or v

    @property
    def url(self) -> str:
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


def build_section(section: type[SectionT], data: dict[str, Any]) -> SectionT:
    """
    Собирает секцию из плоского словаря config.json.
    Для секретов и ENV_OVERRIDABLE_KEYS непустая переменная окружения важнее файла.
    """
    values: dict[str, Any] = {}
    for name in section.model_fields:
        env_value = os.getenv(name) if name in SECRET_KEYS or name in ENV_OVERRIDABLE_KEYS else None
        if env_value:
            values[name] = env_value
        elif name in data:
            values[name] = data[name]
    return section(**values)


SECTIONS: dict[str, type[BaseModel]] = {
    "system": SystemSettings,
    "deployment": DeploymentSettings,
    "logging": LoggingSettings,
    "domain": DomainSettings,
    "security": SecuritySettings,
    "database": DatabaseSettings,
    "redis": RedisSettings,
    "redis_ttl": RedisTTLSettings,
    "rabbitmq": RabbitMQSettings,
}

# =============================================================================
# НАСТРОЙКИ ПРИЛОЖЕНИЯ
# =============================================================================

class Settings(BaseSettings):
    """Все секции конфигурации."""
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    domain: DomainSettings = Field(default_factory=DomainSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    redis_ttl: RedisTTLSettings = Field(default_factory=RedisTTLSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls) -> "Settings":
        data = load_config_json()
        return cls(**{name: build_section(section, data) for name, section in SECTIONS.items()})


@lru_cache()
def get_settings() -> Settings:
    """Настройки процесса (один раз, с подгрузкой .env)."""
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


settings = get_settings()
