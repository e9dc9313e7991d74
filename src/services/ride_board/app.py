# src/services/ride_board/app.py
"""
FastAPI приложение Ride Board Service.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from src.common.constants import TypeMsg
from src.common.errors import (
    AuthenticationRequiredError,
    ConflictError,
    InternalError,
    InvalidStateTransitionError,
    NotFoundError,
    RideBoardError,
    UnauthorizedError,
    ValidationError,
)
from src.common.logger import log_error, log_info, log_warning
from src.config import settings
from src.services.ride_board.routes import routers
from src.shared.models.common import ErrorResponse, HealthStatus

_started_at = time.monotonic()

# Код ответа по классу доменной ошибки (ищется по MRO)
STATUS_BY_ERROR: dict[type[RideBoardError], int] = {
    NotFoundError: 404,
    AuthenticationRequiredError: 401,
    UnauthorizedError: 403,
    ValidationError: 422,
    InvalidStateTransitionError: 409,
    ConflictError: 409,
    InternalError: 500,
}


def status_for(error: RideBoardError) -> int:
    """HTTP-код для доменной ошибки."""
    for cls in type(error).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return 500


def _error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Жизненный цикл приложения."""
    await log_info("Ride Board Service запускается...", type_msg=TypeMsg.INFO)

    from src.services.ride_board.dependencies import close_dependencies, init_dependencies
    await init_dependencies()

    yield

    await close_dependencies()
    await log_info("Ride Board Service остановлен", type_msg=TypeMsg.INFO)


# =============================================================================
# ПРИЛОЖЕНИЕ
# =============================================================================

app = FastAPI(
    title="Ride Board Service",
    description="Доска попутчиков: объявления, сообщества, проверка удостоверений",
    version=settings.system.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.deployment.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in routers:
    app.include_router(router, prefix="/api/v1")


# =============================================================================
# ОБРАБОТЧИКИ ОШИБОК
# =============================================================================

@app.exception_handler(RideBoardError)
async def ride_board_error_handler(request: Request, exc: RideBoardError) -> JSONResponse:
    """Доменные ошибки в единый формат ErrorResponse."""
    status_code = status_for(exc)
    if status_code >= 500:
        await log_error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        await log_warning(f"{request.method} {request.url.path} -> {status_code} {exc.error_code}: {exc.message}")
    return _error_response(status_code, ErrorResponse.from_error(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(422, ErrorResponse.from_validation(exc.errors()))


@app.exception_handler(PydanticValidationError)
async def model_validation_handler(request: Request, exc: PydanticValidationError) -> JSONResponse:
    return _error_response(422, ErrorResponse.from_validation(exc.errors()))


# =============================================================================
# HEALTH CHECK
# =============================================================================

@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check() -> HealthStatus:
    """Проверка здоровья сервиса."""
    from src.services.ride_board.dependencies import get_db, get_event_bus, get_redis

    checks = {
        "postgres": get_db,
        "redis": get_redis,
        "rabbitmq": get_event_bus,
    }
    results: dict[str, bool] = {}
    for name, getter in checks.items():
        try:
            results[name] = bool(await getter().health_check())
        except Exception as e:
            await log_warning(f"Health check {name}: {e}")
            results[name] = False

    return HealthStatus.from_checks(
        "ride_board",
        results,
        version=settings.system.VERSION,
        uptime_seconds=round(time.monotonic() - _started_at, 3),
    )
