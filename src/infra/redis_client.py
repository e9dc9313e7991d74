# src/infra/redis_client.py
"""
Redis-кэш профилей.

Профиль читается на каждой проверке истечения и в ленте, поэтому сервис профилей
держит его в Redis (cache-aside), а любая запись в профиль удаляет ключ.
Значения хранятся JSON-строками Pydantic моделей под префиксом namespace.
"""

from __future__ import annotations

from typing import Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError as PydanticValidationError

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info, log_warning

M = TypeVar("M", bound=BaseModel)

DEFAULT_NAMESPACE = "ride_board"


class RedisClient:
    """Один клиент redis.asyncio на процесс (Singleton)."""

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None
        self._namespace = DEFAULT_NAMESPACE

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    def key(self, name: str) -> str:
        """Полный ключ: namespace:name."""
        return f"{self._namespace}:{name}"

    async def connect(
        self,
        url: str,
        max_connections: int = 50,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        """Создаёт клиент и проверяет связь PING."""
        if self._client is not None:
            return

        self._namespace = namespace or DEFAULT_NAMESPACE
        client = redis.from_url(url, max_connections=max_connections, decode_responses=True)
        await client.ping()
        self._client = client
        await log_info(f"Redis готов, namespace={self._namespace}", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        await log_info("Соединение с Redis закрыто", type_msg=TypeMsg.INFO)

    # =========================================================================
    # СТРОКИ
    # =========================================================================

    async def get(self, name: str) -> str | None:
        return await self.client.get(self.key(name))

    async def set(self, name: str, value: str, ttl: int | None = None) -> bool:
        """Сохраняет строку; ttl в секундах, None = без истечения."""
        return bool(await self.client.set(self.key(name), value, ex=ttl))

    async def delete(self, *names: str) -> int:
        """Удаляет ключи и возвращает число удалённых."""
        if not names:
            return 0
        return await self.client.delete(*[self.key(name) for name in names])

    # =========================================================================
    # PYDANTIC МОДЕЛИ
    # =========================================================================

    async def get_model(self, name: str, model_class: Type[M]) -> M | None:
        """
        Модель из кэша или None.
        Запись, которая не проходит валидацию (например, после смены схемы профиля),
        удаляется и считается промахом.
        """
        raw = await self.get(name)
        if raw is None:
            return None
        try:
            return model_class.model_validate_json(raw)
        except PydanticValidationError as e:
            await log_warning(f"Запись кэша {name} не соответствует {model_class.__name__}, удаляем: {e}")
            await self.delete(name)
            return None

    async def set_model(self, name: str, model: BaseModel, ttl: int | None = None) -> bool:
        return await self.set(name, model.model_dump_json(), ttl=ttl)

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}")
            return False


def get_redis() -> RedisClient:
    return RedisClient()


async def init_redis() -> None:
    """Подключает Redis по настройкам."""
    from src.config import settings

    cfg = settings.redis
    await get_redis().connect(
        url=cfg.url,
        max_connections=cfg.REDIS_MAX_CONNECTIONS,
        namespace=cfg.REDIS_NAMESPACE,
    )
    await log_info(f"Redis подключён: {cfg.REDIS_HOST}:{cfg.REDIS_PORT}/{cfg.REDIS_DB}", type_msg=TypeMsg.INFO)


async def close_redis() -> None:
    await get_redis().disconnect()
