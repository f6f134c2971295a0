# src/core/orders/__init__.py
"""
Домен заказов.
Модели, валидация формы, жизненный цикл, хранилище и оформление заказов.
"""

from src.core.orders.models import Order, OrderCreateDTO, OrderFormData

__all__ = [
    "Order",
    "OrderCreateDTO",
    "OrderFormData",
]
