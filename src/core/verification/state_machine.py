# src/core/verification/state_machine.py
"""
Машина состояний проверки удостоверения (NIC).

UNVERIFIED -> PENDING -> VERIFIED | REJECTED, REJECTED -> PENDING.
VERIFIED конечное состояние. Каждый переход проверяет текущее состояние
и возвращает новую запись, исходная не меняется.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from src.common.constants import DEFAULT_REJECTION_REASON, VerificationStatus
from src.common.errors import AlreadyVerifiedError, InvalidStateTransitionError, ValidationError
from src.common.validators import is_valid_nic_number
from src.core.profiles.models import NicVerification

ALLOWED_TRANSITIONS: dict[VerificationStatus, list[VerificationStatus]] = {
    VerificationStatus.UNVERIFIED: [VerificationStatus.PENDING],
    VerificationStatus.PENDING: [
        VerificationStatus.PENDING,
        VerificationStatus.VERIFIED,
        VerificationStatus.REJECTED,
    ],
    VerificationStatus.REJECTED: [VerificationStatus.PENDING],
    VerificationStatus.VERIFIED: [],
}


def can_transition(current: VerificationStatus, new: VerificationStatus) -> bool:
    """Разрешён ли переход current -> new."""
    return new in ALLOWED_TRANSITIONS.get(current, [])


def _guard(record: NicVerification, target: VerificationStatus) -> None:
    if can_transition(record.status, target):
        return
    if record.status == VerificationStatus.VERIFIED:
        raise AlreadyVerifiedError("Удостоверение уже подтверждено")
    raise InvalidStateTransitionError(
        f"Переход {record.status.value} -> {target.value} невозможен",
        details={"status": record.status.value, "target": target.value},
    )


def submit(record: NicVerification, front_url: str, back_url: str, now: datetime) -> NicVerification:
    """
    Отправка фото на проверку.
    Повторная отправка в PENDING просто заменяет фото.

    Raises:
        ValidationError: пустая ссылка на фото
        AlreadyVerifiedError: удостоверение уже подтверждено
    """
    _guard(record, VerificationStatus.PENDING)
    front_url = (front_url or "").strip()
    back_url = (back_url or "").strip()
    if not front_url or not back_url:
        raise ValidationError("Загрузите фото обеих сторон удостоверения")

    return record.model_copy(
        update={
            "status": VerificationStatus.PENDING,
            "front_image_url": front_url,
            "back_image_url": back_url,
            "rejection_reason": None,
            "rejected_at": None,
            "submitted_at": now,
        }
    )


def approve(record: NicVerification, nic_number: str, now: datetime) -> NicVerification:
    """
    Одобрение администратором: фото на проверке становятся подтверждёнными.

    Raises:
        InvalidStateTransitionError: запись не в PENDING
        ValidationError: номер удостоверения пустой или некорректный
    """
    _guard_admin(record, VerificationStatus.VERIFIED)
    nic_number = (nic_number or "").strip()
    if not nic_number:
        raise ValidationError("Укажите номер удостоверения")
    if not is_valid_nic_number(nic_number):
        raise ValidationError(
            "Некорректный номер удостоверения (формат 12345-1234567-1)",
            details={"nic_number": nic_number},
        )

    return record.model_copy(
        update={
            "status": VerificationStatus.VERIFIED,
            "nic_number": nic_number,
            "front": record.front_image_url,
            "back": record.back_image_url,
            "front_image_url": None,
            "back_image_url": None,
            "rejection_reason": None,
            "rejected_at": None,
            "verified_at": now,
        }
    )


def reject(record: NicVerification, reason: Optional[str], now: datetime) -> NicVerification:
    """
    Отклонение администратором. Пустая причина заменяется стандартной.

    Raises:
        InvalidStateTransitionError: запись не в PENDING
    """
    _guard_admin(record, VerificationStatus.REJECTED)
    return record.model_copy(
        update={
            "status": VerificationStatus.REJECTED,
            "front_image_url": None,
            "back_image_url": None,
            "rejection_reason": (reason or "").strip() or DEFAULT_REJECTION_REASON,
            "rejected_at": now,
        }
    )


def _guard_admin(record: NicVerification, target: VerificationStatus) -> None:
    # Решения администратора принимаются только по записи на проверке
    if record.status != VerificationStatus.PENDING:
        raise InvalidStateTransitionError(
            "Удостоверение не ожидает проверки",
            details={"status": record.status.value, "target": target.value},
        )
