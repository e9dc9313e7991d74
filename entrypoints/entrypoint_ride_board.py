#!/usr/bin/env python3
# entrypoint_ride_board.py
"""
Точка входа контейнера Ride Board API.
Схему БД применяет lifespan приложения при подключении к PostgreSQL.
"""

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию в путь
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))

from main import main  # noqa: E402


if __name__ == "__main__":
    sys.exit(asyncio.run(main("api")))
