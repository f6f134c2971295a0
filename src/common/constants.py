# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class OrderStatus(str, Enum):
    """Статусы заказа."""
    PENDING = "pending"
    ACTIVE = "active"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Терминальный ли статус."""
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class ServiceType(str, Enum):
    """Типы услуг каталога."""
    CARPOOLING = "carpooling"
    SHOPPING = "shopping"
    LARGE_ITEMS = "large_items"


class PaymentMethod(str, Enum):
    """Способы оплаты."""
    WALLET = "wallet"
    CASH = "cash"
    CARD = "card"


class TransitionActor(str, Enum):
    """Кто инициирует смену статуса."""
    USER = "user"
    OPERATOR = "operator"


class ChangeType(str, Enum):
    """Типы изменений строки в ленте изменений."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# Таблица, на которую подписана лента изменений
ORDERS_TABLE = "orders"
