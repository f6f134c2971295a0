# src/common/exceptions.py
"""
Иерархия ошибок приложения.
Все ошибки восстановимы: вызывающий код показывает уведомление
и сохраняет предыдущее состояние.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.common.constants import OrderStatus


class OrderHubError(Exception):
    """Базовая ошибка приложения."""


class ValidationError(OrderHubError):
    """
    Ошибки формы заказа, которые пользователь может исправить.
    Не логируется как сбой.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__(", ".join(f"{field}: {msg}" for field, msg in self.errors.items()))


class InsufficientFunds(ValidationError):
    """Баланса кошелька не хватает на оплату заказа."""


class NotInServiceArea(OrderHubError):
    """Координаты или адрес вне страны обслуживания."""


class NoAddressFound(OrderHubError):
    """Обратное геокодирование не вернуло ни одного адреса."""


class ServiceNotFound(OrderHubError):
    """Услуга не найдена или найдено несколько совпадений."""


class FetchFailed(OrderHubError):
    """Не удалось прочитать заказы из хранилища."""


class PersistFailed(OrderHubError):
    """Не удалось записать изменение в хранилище."""


class IllegalTransition(OrderHubError):
    """Недопустимый переход статуса заказа."""

    def __init__(self, current: OrderStatus, target: OrderStatus) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Переход {current.value} -> {target.value} недопустим")


class GeolocationUnavailable(OrderHubError):
    """Устройство не смогло определить координаты."""


class OrderNotFound(OrderHubError):
    """Заказ с таким ID не найден."""
