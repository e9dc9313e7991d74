# src/shared/models/common.py
"""
Модели ответов API, общие для всех роутеров: тело ошибки и health check.
"""

from __future__ import annotations

from typing import Any, Literal, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.common.errors import RideBoardError, ValidationError

ServiceState = Literal["healthy", "degraded", "unhealthy"]

REQUEST_INVALID_MESSAGE = "Некорректные данные запроса"


class ApiModel(BaseModel):
    """
    Базовая модель тел запросов и ответов.
    В JSON поля в camelCase (startLocation, expiresAt), в коде snake_case;
    при разборе принимаются оба варианта.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ErrorResponse(ApiModel):
    """Тело ответа с ошибкой."""

    error_code: str
    message: str
    details: dict[str, Any] | None = None

    @classmethod
    def from_error(cls, error: RideBoardError) -> ErrorResponse:
        return cls(error_code=error.error_code, message=error.message, details=error.details)

    @classmethod
    def from_validation(cls, errors: Sequence[Any]) -> ErrorResponse:
        """
        Ошибки валидации FastAPI/pydantic.
        Из каждой ошибки остаются только loc, msg и type: ctx может содержать исключение.
        """
        return cls(
            error_code=ValidationError.error_code,
            message=REQUEST_INVALID_MESSAGE,
            details={
                "errors": [
                    {
                        "loc": [str(part) for part in error.get("loc", ())],
                        "msg": str(error.get("msg", "")),
                        "type": str(error.get("type", "")),
                    }
                    for error in errors
                ]
            },
        )


class HealthStatus(ApiModel):
    """Состояние сервиса и его зависимостей."""

    service: str
    status: ServiceState = "healthy"
    version: str | None = None
    uptime_seconds: float | None = None
    dependencies: dict[str, ServiceState] = Field(default_factory=dict)

    @classmethod
    def from_checks(
        cls,
        service: str,
        checks: dict[str, bool],
        version: str | None = None,
        uptime_seconds: float | None = None,
    ) -> HealthStatus:
        """Сервис degraded, если хотя бы одна зависимость не отвечает."""
        dependencies: dict[str, ServiceState] = {
            name: "healthy" if ok else "unhealthy" for name, ok in checks.items()
        }
        return cls(
            service=service,
            status="healthy" if all(checks.values()) else "degraded",
            version=version,
            uptime_seconds=uptime_seconds,
            dependencies=dependencies,
        )
