"""Persistence layer: store protocol, PostgreSQL and in-memory implementations"""
from ecoscan.db.store import GamificationStore

__all__ = ["GamificationStore"]
