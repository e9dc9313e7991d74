# src/core/rides/__init__.py
"""
Домен объявлений о поездках.
Политика истечения, репозиторий и сервис.
"""

from src.core.rides.models import Ride, FeedRide, RideCreateDTO, RideUpdateDTO
from src.core.rides.expiry import is_active, is_expired_or_archived, is_past_listing, compute_expires_at
from src.core.rides.repository import RideRepository
from src.core.rides.service import RideService

__all__ = [
    "Ride",
    "FeedRide",
    "RideCreateDTO",
    "RideUpdateDTO",
    "is_active",
    "is_expired_or_archived",
    "is_past_listing",
    "compute_expires_at",
    "RideRepository",
    "RideService",
]
