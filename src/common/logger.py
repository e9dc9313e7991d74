# src/common/logger.py
"""
Логирование доски поездок.

Все модули пишут через асинхронные log_info/log_warning/log_error: к записи
добавляется место вызова (модуль, функция, файл, строка) и словарь extra.
Формат задаётся LOG_FORMAT: "json" для контейнеров, "colored" для консоли.
При LOG_TO_FILE записи дублируются в файл, ошибки дополнительно в error.log.
"""

from __future__ import annotations

import inspect
import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from src.common.constants import TypeMsg

DEFAULT_LOGGER_NAME = "ride_board"

LEVELS: dict[TypeMsg, int] = {
    TypeMsg.DEBUG: logging.DEBUG,
    TypeMsg.INFO: logging.INFO,
    TypeMsg.WARNING: logging.WARNING,
    TypeMsg.ERROR: logging.ERROR,
    TypeMsg.CRITICAL: logging.CRITICAL,
}

# Библиотеки, которые пишут только предупреждения
QUIET_LIBRARIES = ("asyncpg", "redis", "aio_pika", "aiormq", "httpx", "uvicorn.access")

_loggers: dict[str, logging.Logger] = {}
_shared_file_handlers: list[logging.Handler] = []
_LOGGING_INITIALIZED: bool = False


# =============================================================================
# ФОРМАТТЕРЫ
# =============================================================================

def _extra_of(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "extra_data", None) or {}


class JsonFormatter(logging.Formatter):
    """Одна запись = одна JSON-строка."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        extra = _extra_of(record)
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Строка с цветом уровня и местом вызова."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    GRAY = "\033[90m"

    def _origin(self, extra: dict[str, Any]) -> str:
        if not extra.get("caller_function"):
            return ""
        return (
            f" {self.GRAY}[{extra['caller_module']}.{extra['caller_function']}() "
            f"{extra['caller_file']}:{extra['caller_line']}]{self.RESET}"
        )

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.GRAY)
        moment = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{moment} {color}[{record.levelname}]{self.RESET}{self._origin(_extra_of(record))} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def make_formatter(fmt: str) -> logging.Formatter:
    return JsonFormatter() if fmt == "json" else ColoredFormatter()


# =============================================================================
# ФАЙЛЫ
# =============================================================================

class ArchivingFileHandler(RotatingFileHandler):
    """
    Пишет в <name>.log; при достижении max_bytes файл переименовывается
    в <name>_YYYY-MM-DD_HH-MM-SS.log, в каталоге остаётся не больше keep архивов.
    """

    def __init__(self, directory: Path, name: str, max_bytes: int, keep: int = 5) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        self.directory = directory
        self.name_stem = name
        self.keep = keep
        super().__init__(
            filename=str(directory / f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=0,
            encoding="utf-8",
        )

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None

        current = Path(self.baseFilename)
        if current.exists():
            stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            try:
                current.rename(self.directory / f"{self.name_stem}_{stamp}.log")
            except OSError:
                # Файл держит другой процесс: продолжаем дописывать в него
                pass

        self.prune()
        self.stream = self._open()

    def prune(self) -> None:
        """Удаляет самые старые архивы сверх keep."""
        if self.keep <= 0:
            return
        archives = sorted(self.directory.glob(f"{self.name_stem}_*.log"))
        for stale in archives[:-self.keep]:
            stale.unlink(missing_ok=True)


# =============================================================================
# НАСТРОЙКИ И ЛОГГЕРЫ
# =============================================================================

@dataclass(frozen=True)
class LogConfig:
    level: str = "DEBUG"
    fmt: str = "colored"
    to_file: bool = False
    file_path: str = "logs/app.log"
    max_bytes: int = 10485760
    backup_count: int = 5

    @classmethod
    def from_settings(cls) -> LogConfig:
        """
        Секция logging из настроек.
        В тестах settings бывает MagicMock: значение неверного типа заменяется умолчанием.
        """
        try:
            from src.config import settings
            section = settings.logging
        except Exception:
            return cls()

        defaults = cls()

        def pick(value: Any, expected: type, default: Any) -> Any:
            return value if isinstance(value, expected) else default

        return cls(
            level=pick(section.LOG_LEVEL, str, defaults.level),
            fmt=pick(section.LOG_FORMAT, str, defaults.fmt),
            to_file=section.LOG_TO_FILE is True,
            file_path=pick(section.LOG_FILE_PATH, str, defaults.file_path),
            max_bytes=pick(section.LOG_MAX_BYTES, int, defaults.max_bytes),
            backup_count=pick(section.LOG_BACKUP_COUNT, int, defaults.backup_count),
        )


def _file_handlers(config: LogConfig) -> list[logging.Handler]:
    """Общий файл и error.log; создаются один раз на процесс."""
    if _shared_file_handlers:
        return _shared_file_handlers

    path = Path(config.file_path)
    stem = path.stem
    # SERVICE_NAME разделяет файлы нескольких экземпляров в одном каталоге
    if os.getenv("SERVICE_NAME"):
        stem = f"{stem}_{os.environ['SERVICE_NAME']}"

    main_handler = ArchivingFileHandler(path.parent, stem, config.max_bytes, config.backup_count)
    error_handler = ArchivingFileHandler(path.parent, "error", config.max_bytes, config.backup_count)
    error_handler.setLevel(logging.ERROR)
    for handler in (main_handler, error_handler):
        handler.setFormatter(make_formatter(config.fmt))
        _shared_file_handlers.append(handler)
    return _shared_file_handlers


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Логгер с консольным (и при необходимости файловыми) хендлерами; кэшируется по имени."""
    if name in _loggers:
        return _loggers[name]

    config = LogConfig.from_settings()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, config.level.upper(), logging.DEBUG))

    if not logger.handlers:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(make_formatter(config.fmt))
        logger.addHandler(console)
        if config.to_file:
            for handler in _file_handlers(config):
                logger.addHandler(handler)
        logger.propagate = False

    _loggers[name] = logger
    return logger


def setup_logging() -> None:
    """Настраивает логирование процесса; повторный вызов ничего не делает."""
    global _LOGGING_INITIALIZED
    if _LOGGING_INITIALIZED:
        return
    _LOGGING_INITIALIZED = True

    get_logger(DEFAULT_LOGGER_NAME)
    for library in QUIET_LIBRARIES:
        logging.getLogger(library).setLevel(logging.WARNING)


# =============================================================================
# ФУНКЦИИ ЛОГИРОВАНИЯ
# =============================================================================

def _get_caller_info(depth: int = 2) -> dict[str, Any]:
    """
    Место вызова функции логирования.

    Args:
        depth: Сколько кадров пропустить над _get_caller_info
    """
    frame = inspect.currentframe()
    try:
        caller = frame
        for _ in range(depth + 1):
            if caller is None:
                return {}
            caller = caller.f_back
        if caller is None:
            return {}
        module = inspect.getmodule(caller)
        return {
            "caller_function": caller.f_code.co_name,
            "caller_module": module.__name__ if module else "unknown",
            "caller_file": Path(caller.f_code.co_filename).name,
            "caller_line": caller.f_lineno,
        }
    finally:
        del frame


def _log(
    type_msg: TypeMsg,
    message: str,
    logger_name: str,
    extra: dict[str, Any] | None,
    exc_info: bool = False,
) -> None:
    # Кадры: _get_caller_info -> _log -> log_* -> вызывающий код
    record_extra = {"extra_data": {**_get_caller_info(depth=2), **(extra or {})}}
    level = LEVELS.get(type_msg, logging.INFO)
    get_logger(logger_name).log(level, message, extra=record_extra, exc_info=exc_info)


async def log_info(
    message: str,
    *,
    type_msg: TypeMsg = TypeMsg.INFO,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Запись уровня type_msg (по умолчанию INFO).

    Args:
        message: Текст записи
        type_msg: Уровень
        logger_name: Имя логгера
        extra: Структурированные поля (ride_id, user_id и т.п.)
    """
    _log(type_msg, message, logger_name, extra)


async def log_debug(message: str, logger_name: str = DEFAULT_LOGGER_NAME, extra: dict[str, Any] | None = None) -> None:
    _log(TypeMsg.DEBUG, message, logger_name, extra)


async def log_warning(message: str, logger_name: str = DEFAULT_LOGGER_NAME, extra: dict[str, Any] | None = None) -> None:
    _log(TypeMsg.WARNING, message, logger_name, extra)


async def log_error(
    message: str,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """Запись уровня ERROR; exc_info=True добавляет трейсбек текущего исключения."""
    _log(TypeMsg.ERROR, message, logger_name, extra, exc_info=exc_info)
