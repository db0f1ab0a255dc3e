"""Fixtures for API tests (in-process ASGI app over the in-memory store)"""
import pytest

from ecoscan import config
from ecoscan.api.middleware import limiter
from ecoscan.api.server import create_api_application
from ecoscan.db.catalog import DEFAULT_ACHIEVEMENTS
from ecoscan.db.memory_store import InMemoryGamificationStore
from ecoscan.services.container import init_container


@pytest.fixture
def api_store():
    return InMemoryGamificationStore(DEFAULT_ACHIEVEMENTS)


@pytest.fixture
def app(monkeypatch, api_store):
    """Application wired to a fresh store with a known API key"""
    monkeypatch.setattr(config, "API_KEYS", ["test_key_123"])
    limiter.reset()
    container = init_container(api_store)
    return create_api_application(container)


@pytest.fixture
def headers():
    return {"Authorization": "Bearer test_key_123"}


@pytest.fixture
def scan_payload():
    return {
        "classification": {
            "detected_object": "aluminum can",
            "detected_object_localized": "lata de aluminio",
            "waste_type": "metal",
            "bin": "white",
            "category": "recyclable",
            "recyclable": True,
            "confidence": 88,
            "advice": "Empty and rinse it.",
        },
        "origin": "web",
    }
