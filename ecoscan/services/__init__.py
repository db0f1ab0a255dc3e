"""
Service layer for ecoscan

Business logic behind the HTTP API, with the store injected through
the ServiceContainer.
"""
from ecoscan.services.gamification_service import GamificationService
from ecoscan.services.container import ServiceContainer, get_container, init_container

__all__ = [
    "GamificationService",
    "ServiceContainer",
    "get_container",
    "init_container",
]
