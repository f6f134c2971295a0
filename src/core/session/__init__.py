# src/core/session/__init__.py
"""
Пользовательская сессия.
"""

from src.core.session.context import AuthProvider, RedisSessionStore, SessionContext

__all__ = [
    "AuthProvider",
    "RedisSessionStore",
    "SessionContext",
]
