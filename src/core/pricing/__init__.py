# src/core/pricing/__init__.py
"""
Ценообразование.
"""

from src.core.pricing.service import (
    TARIFFS,
    Tariff,
    compute_price,
    format_distance,
    format_price,
    get_tariff,
    verify_price,
)

__all__ = [
    "TARIFFS",
    "Tariff",
    "compute_price",
    "format_distance",
    "format_price",
    "get_tariff",
    "verify_price",
]
