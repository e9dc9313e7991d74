# src/core/__init__.py
"""
Доменный слой (Core Domain).
Бизнес-логика доски поездок, независимая от HTTP.
"""

from src.core.rides import Ride, FeedRide, RideService
from src.core.communities import Community, CommunityService, CommunityRequestService
from src.core.profiles import Profile, ProfileService
from src.core.verification import VerificationService
from src.core.reviews import Review, ReviewService
from src.core.feed import FeedAssembler

__all__ = [
    "Ride",
    "FeedRide",
    "RideService",
    "Community",
    "CommunityService",
    "CommunityRequestService",
    "Profile",
    "ProfileService",
    "VerificationService",
    "Review",
    "ReviewService",
    "FeedAssembler",
]
