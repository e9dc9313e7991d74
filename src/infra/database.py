# src/infra/database.py
"""
PostgreSQL доски поездок.

Один пул asyncpg на процесс. Обрыв соединения повторяется с нарастающей паузой,
ошибки SQL уходят вызывающему сразу. Репозитории получают статус команды
("UPDATE 1", "DELETE 0") и проверяют число затронутых строк через affected_rows.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import wraps
from pathlib import Path
from typing import Any, AsyncGenerator, Callable, TypeVar

import asyncpg
from asyncpg import Connection, Pool, Record

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info, log_warning

T = TypeVar("T")

# Ключ pg_advisory_xact_lock для применения схемы
SCHEMA_LOCK_ID = 724_031_001

# Ошибки, после которых запрос имеет смысл повторить
RECONNECT_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    ConnectionRefusedError,
    OSError,
)


@dataclass(frozen=True)
class PoolConfig:
    """Параметры пула соединений."""

    dsn: str
    min_size: int = 5
    max_size: int = 20
    command_timeout: int = 60

    @classmethod
    def from_settings(cls) -> PoolConfig:
        from src.config import settings

        db = settings.database
        return cls(
            dsn=db.dsn,
            min_size=db.DB_MIN_POOL_SIZE,
            max_size=db.DB_MAX_POOL_SIZE,
            command_timeout=db.DB_COMMAND_TIMEOUT,
        )


def reconnecting(attempts: int = 3, backoff: float = 1.0) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Повторяет корутину при потере соединения с PostgreSQL.

    Args:
        attempts: Сколько всего попыток
        backoff: Пауза после первой неудачи (секунды), далее backoff * номер попытки
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except RECONNECT_ERRORS as e:
                    if attempt >= attempts:
                        await log_error(f"PostgreSQL недоступен, {func.__name__} не выполнен за {attempts} попыток: {e}")
                        raise
                    await log_warning(f"PostgreSQL: {func.__name__} попытка {attempt}/{attempts} не удалась: {e}")
                    await asyncio.sleep(backoff * attempt)
                    attempt += 1

        return wrapper  # type: ignore

    return decorator


def affected_rows(status: str | None) -> int:
    """
    Число строк из статуса команды asyncpg.

    Example:
        affected_rows("DELETE 1") == 1
        affected_rows("INSERT 0 3") == 3
    """
    if not status:
        return 0
    tail = status.rsplit(" ", 1)[-1]
    return int(tail) if tail.isdigit() else 0


def is_unique_violation(error: BaseException) -> bool:
    """Нарушение уникального индекса (повторное вступление, повторный отзыв)."""
    return isinstance(error, asyncpg.UniqueViolationError)


class DatabaseManager:
    """
    Владелец пула соединений.
    Singleton: сервисы и health check работают с одним и тем же пулом.
    """

    _instance: DatabaseManager | None = None
    _pool: Pool | None = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._pool = None

    @property
    def pool(self) -> Pool:
        if self._pool is None:
            raise RuntimeError("Пул соединений не инициализирован. Вызовите connect() сначала.")
        return self._pool

    @reconnecting(attempts=3, backoff=1.0)
    async def connect(self, config: PoolConfig | None = None) -> None:
        """Открывает пул; повторный вызов при открытом пуле ничего не делает."""
        if self._pool is not None:
            return

        config = config or PoolConfig.from_settings()
        await log_info(
            f"Подключение к PostgreSQL (пул {config.min_size}..{config.max_size})...",
            type_msg=TypeMsg.INFO,
        )
        self._pool = await asyncpg.create_pool(
            dsn=config.dsn,
            min_size=config.min_size,
            max_size=config.max_size,
            command_timeout=config.command_timeout,
        )

    async def disconnect(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        await log_info("Пул PostgreSQL закрыт", type_msg=TypeMsg.INFO)

    @asynccontextmanager
    async def acquire(self) -> AsyncGenerator[Connection, None]:
        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Connection, None]:
        """Соединение внутри транзакции: commit при выходе, rollback при исключении."""
        async with self.pool.acquire() as connection:
            async with connection.transaction():
                yield connection

    # =========================================================================
    # ЗАПРОСЫ
    # =========================================================================

    @reconnecting()
    async def execute(self, query: str, *args: Any) -> str:
        """Запрос без строк результата. Возвращает статус команды."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    @reconnecting()
    async def fetch(self, query: str, *args: Any) -> list[Record]:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    @reconnecting()
    async def fetchrow(self, query: str, *args: Any) -> Record | None:
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    @reconnecting()
    async def fetchval(self, query: str, *args: Any, column: int = 0) -> Any:
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args, column=column)

    # =========================================================================
    # СХЕМА И ЗДОРОВЬЕ
    # =========================================================================

    async def apply_schema(self, schema_path: Path) -> bool:
        """
        Выполняет идемпотентный SQL-скрипт схемы.
        Экземпляры сервиса, стартующие одновременно, ждут друг друга на advisory lock.

        Returns:
            False, если файла нет или схему в этот момент применяет другой экземпляр
        """
        if not schema_path.exists():
            await log_error(f"Файл схемы БД не найден: {schema_path}")
            return False

        schema_sql = schema_path.read_text(encoding="utf-8")
        try:
            async with self.transaction() as conn:
                await conn.execute("SELECT pg_advisory_xact_lock($1)", SCHEMA_LOCK_ID)
                await conn.execute(schema_sql)
        except asyncpg.DeadlockDetectedError as e:
            await log_warning(f"Схему применяет другой экземпляр: {e}")
            return False

        await log_info(f"Схема БД применена: {schema_path.name}", type_msg=TypeMsg.INFO)
        return True

    async def health_check(self) -> bool:
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            await log_error(f"Health check PostgreSQL failed: {e}")
            return False


_db_manager: DatabaseManager | None = None


def get_db() -> DatabaseManager:
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


async def init_db() -> None:
    """Открывает пул по настройкам и применяет migrations/init.sql."""
    from src.config import settings
    from src.config.loader import get_project_root

    db = get_db()
    await db.connect(PoolConfig.from_settings())
    await log_info(
        f"PostgreSQL подключён: {settings.database.DB_HOST}:{settings.database.DB_PORT}/{settings.database.DB_NAME}",
        type_msg=TypeMsg.INFO,
    )
    await db.apply_schema(get_project_root() / "migrations" / "init.sql")


async def close_db() -> None:
    await get_db().disconnect()
