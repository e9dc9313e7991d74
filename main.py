#!/usr/bin/env python3
# main.py
"""
Точка входа Ride Board.

Использование:
    python main.py api       HTTP API (по умолчанию)
    python main.py migrate   применить migrations/init.sql и выйти
    python main.py check     проверить PostgreSQL, Redis и RabbitMQ; код выхода 1, если что-то недоступно
"""

from __future__ import annotations

import asyncio
import sys
from typing import Awaitable, Callable

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info, setup_logging
from src.config import settings
from src.infra.database import close_db, get_db, init_db
from src.infra.event_bus import close_event_bus, get_event_bus, init_event_bus
from src.infra.redis_client import close_redis, get_redis, init_redis


async def run_api() -> int:
    """Uvicorn сам обрабатывает SIGINT/SIGTERM; подключения открывает lifespan приложения."""
    import uvicorn

    host, port = settings.deployment.RIDE_BOARD_HOST, settings.deployment.RIDE_BOARD_PORT
    await log_info(f"Ride Board API слушает {host}:{port}", type_msg=TypeMsg.INFO)
    server = uvicorn.Server(
        uvicorn.Config(
            "src.services.ride_board.app:app",
            host=host,
            port=port,
            log_level="debug" if settings.system.DEBUG else "info",
        )
    )
    await server.serve()
    return 0


async def run_migrate() -> int:
    await init_db()
    await close_db()
    return 0


async def run_check() -> int:
    """Подключается ко всем зависимостям по очереди и печатает их состояние."""
    probes: list[tuple[str, Callable[[], Awaitable[None]], Callable[[], Awaitable[bool]], Callable[[], Awaitable[None]]]] = [
        ("postgres", init_db, lambda: get_db().health_check(), close_db),
        ("redis", init_redis, lambda: get_redis().health_check(), close_redis),
        ("rabbitmq", init_event_bus, lambda: get_event_bus().health_check(), close_event_bus),
    ]
    failed = 0
    for name, connect, probe, close in probes:
        try:
            await connect()
            healthy = await probe()
        except Exception as e:
            await log_error(f"{name}: подключение не удалось: {e}")
            healthy = False
        finally:
            await close()
        await log_info(f"{name}: {'healthy' if healthy else 'unhealthy'}", type_msg=TypeMsg.INFO)
        failed += not healthy
    return 1 if failed else 0


MODES: dict[str, Callable[[], Awaitable[int]]] = {
    "api": run_api,
    "migrate": run_migrate,
    "check": run_check,
}


async def main(mode: str) -> int:
    setup_logging()
    await log_info(f"Ride Board v{settings.system.VERSION} ({settings.system.ENVIRONMENT}), режим {mode}", type_msg=TypeMsg.INFO)
    try:
        return await MODES[mode]()
    except Exception as e:
        await log_error(f"Режим {mode} завершился ошибкой: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    args = sys.argv[1:]
    if args and args[0] in ("-h", "--help"):
        print(__doc__)
        sys.exit(0)

    selected = args[0] if args else "api"
    if selected not in MODES:
        print(f"Неизвестный режим: {selected}\n{__doc__}")
        sys.exit(2)

    sys.exit(asyncio.run(main(selected)))
