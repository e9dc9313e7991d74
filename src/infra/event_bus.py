# src/infra/event_bus.py
"""
Доменные события доски поездок в RabbitMQ.

Сервисы публикуют событие после успешной записи в БД; routing key совпадает
с типом события ("ride.created", "verification.rejected"), поэтому потребитель
подписывается на сущность целиком через шаблон "ride.#".
Доставка best-effort: если брокер недоступен, событие теряется, а операция
пользователя всё равно завершается успешно.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import aio_pika
from aio_pika import DeliveryMode, ExchangeType, Message
from aio_pika.abc import AbstractChannel, AbstractExchange, AbstractRobustConnection
from pydantic import BaseModel, ConfigDict, Field

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info

EVENT_SOURCE = "ride_board"


# =============================================================================
# СОБЫТИЯ
# =============================================================================

class EventTypes:
    """Типы событий; они же routing keys."""
    RIDE_CREATED = "ride.created"
    RIDE_UPDATED = "ride.updated"
    RIDE_ARCHIVED = "ride.archived"
    RIDE_DELETED = "ride.deleted"

    VERIFICATION_SUBMITTED = "verification.submitted"
    VERIFICATION_APPROVED = "verification.approved"
    VERIFICATION_REJECTED = "verification.rejected"

    COMMUNITY_CREATED = "community.created"
    COMMUNITY_REQUEST_SUBMITTED = "community_request.submitted"
    COMMUNITY_REQUEST_REVIEWED = "community_request.reviewed"

    REVIEW_CREATED = "review.created"


class DomainEvent(BaseModel):
    """Неизменяемое доменное событие."""
    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4)
    event_type: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = EVENT_SOURCE
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def entity(self) -> str:
        """Сущность события: "ride" для "ride.created"."""
        return self.event_type.split(".", 1)[0]

    def to_message(self) -> Message:
        return Message(
            body=self.model_dump_json().encode(),
            content_type="application/json",
            delivery_mode=DeliveryMode.PERSISTENT,
            message_id=str(self.event_id),
            timestamp=self.occurred_at,
            type=self.event_type,
            headers={"source": self.source, "entity": self.entity},
        )


# =============================================================================
# ШИНА
# =============================================================================

@dataclass(frozen=True)
class BusConfig:
    """Параметры подключения к брокеру."""

    url: str
    exchange: str = "ride_board.events"
    prefetch_count: int = 10

    @classmethod
    def from_settings(cls) -> BusConfig:
        from src.config import settings

        mq = settings.rabbitmq
        return cls(url=mq.url, exchange=mq.RABBITMQ_EXCHANGE, prefetch_count=mq.RABBITMQ_PREFETCH_COUNT)


class EventBus:
    """Публикатор в durable topic exchange (Singleton)."""

    _instance: EventBus | None = None

    def __new__(cls) -> EventBus:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractChannel | None = None
        self._exchange: AbstractExchange | None = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(self, config: BusConfig | None = None) -> None:
        if self.is_connected:
            return

        config = config or BusConfig.from_settings()
        connection = await aio_pika.connect_robust(config.url)
        channel = await connection.channel()
        await channel.set_qos(prefetch_count=config.prefetch_count)
        self._exchange = await channel.declare_exchange(config.exchange, ExchangeType.TOPIC, durable=True)
        self._connection, self._channel = connection, channel
        await log_info(f"RabbitMQ готов, exchange={config.exchange}", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = self._channel = self._exchange = None
        await log_info("Соединение с RabbitMQ закрыто", type_msg=TypeMsg.INFO)

    async def publish(self, event: DomainEvent) -> bool:
        """
        Отправляет событие с routing key = event_type.

        Returns:
            True, если брокер принял сообщение
        """
        if self._exchange is None or not self.is_connected:
            await log_error(f"RabbitMQ не подключён, событие {event.event_type} ({event.event_id}) потеряно")
            return False

        try:
            await self._exchange.publish(event.to_message(), routing_key=event.event_type)
        except Exception as e:
            await log_error(f"Событие {event.event_type} ({event.event_id}) не опубликовано: {e}")
            return False

        await log_info(f"Событие {event.event_type} опубликовано", type_msg=TypeMsg.DEBUG)
        return True

    async def health_check(self) -> bool:
        return self.is_connected


def get_event_bus() -> EventBus:
    return EventBus()


async def init_event_bus() -> None:
    """Подключает шину по настройкам."""
    from src.config import settings

    await get_event_bus().connect(BusConfig.from_settings())
    await log_info(
        f"RabbitMQ подключён: {settings.rabbitmq.RABBITMQ_HOST}:{settings.rabbitmq.RABBITMQ_PORT}",
        type_msg=TypeMsg.INFO,
    )


async def close_event_bus() -> None:
    await get_event_bus().disconnect()
