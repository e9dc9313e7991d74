# src/core/communities/__init__.py
"""
Домен сообществ.
Сообщества, участники и заявки на создание.
"""

from src.core.communities.models import Community, CommunitySummary, Membership, CommunityRequest
from src.core.communities.repository import CommunityRepository, CommunityRequestRepository
from src.core.communities.service import CommunityService, CommunityRequestService

__all__ = [
    "Community",
    "CommunitySummary",
    "Membership",
    "CommunityRequest",
    "CommunityRepository",
    "CommunityRequestRepository",
    "CommunityService",
    "CommunityRequestService",
]
