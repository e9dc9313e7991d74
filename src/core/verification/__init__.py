# src/core/verification/__init__.py
"""
Проверка удостоверения личности (NIC).
"""

from src.core.verification.state_machine import ALLOWED_TRANSITIONS, can_transition
from src.core.verification.service import VerificationService

__all__ = [
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "VerificationService",
]
