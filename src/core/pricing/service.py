# src/core/pricing/service.py
"""
Расчёт стоимости заказа.
Чистые функции на Decimal: одинаковый результат на клиенте и при проверке.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from src.common.constants import ServiceType
from src.core.catalog.models import Service

Number = Union[int, float, Decimal]

_CENTS = Decimal("0.01")
_METERS_IN_KM = Decimal(1000)


@dataclass(frozen=True)
class Tariff:
    """Тариф типа услуги."""
    base: Decimal
    per_km: Decimal


TARIFFS: dict[ServiceType, Tariff] = {
    ServiceType.CARPOOLING: Tariff(base=Decimal("2.50"), per_km=Decimal("0.40")),
    ServiceType.SHOPPING: Tariff(base=Decimal("5.00"), per_km=Decimal("0.50")),
    ServiceType.LARGE_ITEMS: Tariff(base=Decimal("8.00"), per_km=Decimal("0.70")),
}

DEFAULT_TARIFF = TARIFFS[ServiceType.CARPOOLING]


def get_tariff(service_type: ServiceType | str | None) -> Tariff:
    """Тариф по типу услуги; неизвестный тип считается по тарифу carpooling."""
    try:
        return TARIFFS[ServiceType(service_type)]
    except ValueError:
        return DEFAULT_TARIFF


def _to_decimal(value: Number, name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{name}: ожидается число")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"{name} должно быть конечным числом")

    result = value if isinstance(value, Decimal) else Decimal(str(value))
    if not result.is_finite():
        raise ValueError(f"{name} должно быть конечным числом")
    return result


def compute_price(distance_meters: Number, service: Service) -> Decimal:
    """
    Стоимость заказа: база + тариф за км, округление до центов (half-up),
    затем не ниже минимальной цены услуги.

    Args:
        distance_meters: Расстояние в метрах
        service: Услуга каталога

    Returns:
        Цена с двумя знаками после запятой

    Raises:
        ValueError: расстояние отрицательное или не конечное
    """
    distance = _to_decimal(distance_meters, "distance_meters")
    if distance < 0:
        raise ValueError("distance_meters не может быть отрицательным")

    tariff = get_tariff(service.type)
    price = tariff.base + tariff.per_km * (distance / _METERS_IN_KM)
    price = price.quantize(_CENTS, rounding=ROUND_HALF_UP)

    return max(price, service.min_price.quantize(_CENTS, rounding=ROUND_HALF_UP))


def verify_price(proposed: Number, distance_meters: Number, service: Service) -> bool:
    """Предложенная цена не ниже расчётной."""
    try:
        amount = _to_decimal(proposed, "proposed")
    except ValueError:
        return False
    return amount >= compute_price(distance_meters, service)


def format_distance(meters: Number) -> str:
    """850 -> "850 m", 12345 -> "12.3 km"."""
    distance = _to_decimal(meters, "meters")
    if distance < _METERS_IN_KM:
        return f"{distance.quantize(Decimal('1'), rounding=ROUND_HALF_UP)} m"
    km = (distance / _METERS_IN_KM).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{km} km"


def format_price(amount: Number, currency_symbol: str | None = None) -> str:
    """10 -> "10,00 €" (французский формат)."""
    if currency_symbol is None:
        from src.config import settings
        currency_symbol = settings.domain.CURRENCY_SYMBOL

    value = _to_decimal(amount, "amount").quantize(_CENTS, rounding=ROUND_HALF_UP)
    return f"{value:,.2f}".replace(",", " ").replace(".", ",") + f" {currency_symbol}"
