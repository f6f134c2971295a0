# src/core/catalog/__init__.py
"""
Каталог услуг.
"""

from src.core.catalog.models import ResolvedService, Service, ServiceMatch, UnresolvedService

__all__ = [
    "ResolvedService",
    "Service",
    "ServiceMatch",
    "UnresolvedService",
]
