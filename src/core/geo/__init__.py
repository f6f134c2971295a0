# src/core/geo/__init__.py
"""
Гео-домен.
Подсказки адресов, обратное геокодирование, проверка страны обслуживания.
"""

from src.core.geo.debounce import Debouncer
from src.core.geo.models import Candidate, Coordinates, Location
from src.core.geo.provider import (
    GeolocationSource,
    MapboxGeocoder,
    StaticGeolocation,
    looks_like_country_address,
)
from src.core.geo.resolver import AddressResolver

__all__ = [
    "AddressResolver",
    "Candidate",
    "Coordinates",
    "Debouncer",
    "GeolocationSource",
    "Location",
    "MapboxGeocoder",
    "StaticGeolocation",
    "looks_like_country_address",
]
