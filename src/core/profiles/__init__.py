# src/core/profiles/__init__.py
"""
Домен профилей пользователей.
"""

from src.core.profiles.models import Profile, NicVerification, ProfileUpdateDTO
from src.core.profiles.repository import ProfileRepository
from src.core.profiles.service import ProfileService

__all__ = [
    "Profile",
    "NicVerification",
    "ProfileUpdateDTO",
    "ProfileRepository",
    "ProfileService",
]
