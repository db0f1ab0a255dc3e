"""
Service Container - Dependency Injection Container

Simple DI container for managing service instances and their dependencies.
Uses lazy loading to only instantiate services when first accessed.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from ecoscan.db.store import GamificationStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    The store is injected.
    """

    store: GamificationStore
    database: Optional[object] = None  # Database pool owner, when the store is PostgreSQL

    _gamification_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def gamification_service(self):
        """Get GamificationService instance (lazy-loaded)"""
        if self._gamification_service is None:
            from ecoscan.services.gamification_service import GamificationService
            self._gamification_service = GamificationService(self.store)
            logger.debug("GamificationService instantiated")
        return self._gamification_service


# Global container instance (initialized by the API server)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() before using services."
        )
    return _container


def init_container(
    store: GamificationStore,
    database: Optional[object] = None
) -> ServiceContainer:
    """
    Initialize the global service container.

    Args:
        store: Gamification store implementation
        database: Database instance whose pool the API lifespan opens/closes

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(store=store, database=database)

    logger.info(f"Service container initialized with {type(store).__name__}")
    return _container


def build_container_from_config() -> ServiceContainer:
    """Create the store named by STORE_BACKEND and initialize the container"""
    from ecoscan.config import STORE_BACKEND

    if STORE_BACKEND == "memory":
        from ecoscan.db.memory_store import InMemoryGamificationStore
        from ecoscan.db.catalog import DEFAULT_ACHIEVEMENTS

        logger.warning("Using in-memory store - data is NOT persisted")
        return init_container(InMemoryGamificationStore(DEFAULT_ACHIEVEMENTS))

    from ecoscan.db.connection import db
    from ecoscan.db.postgres_store import PostgresGamificationStore

    return init_container(PostgresGamificationStore(db), database=db)
