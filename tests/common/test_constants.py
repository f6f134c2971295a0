# tests/common/test_constants.py
"""
Тесты для модуля констант.
"""

import pytest

from src.common.constants import (
    ORDERS_TABLE,
    ChangeType,
    OrderStatus,
    PaymentMethod,
    ServiceType,
    TransitionActor,
    TypeMsg,
)


class TestTypeMsg:
    """Тесты для enum TypeMsg."""

    def test_type_msg_values(self) -> None:
        """Проверяет значения типов сообщений."""
        assert TypeMsg.DEBUG.value == "debug"
        assert TypeMsg.INFO.value == "info"
        assert TypeMsg.WARNING.value == "warning"
        assert TypeMsg.ERROR.value == "error"
        assert TypeMsg.CRITICAL.value == "critical"

    def test_type_msg_is_str_enum(self) -> None:
        assert isinstance(TypeMsg.DEBUG, str)
        assert TypeMsg.INFO == "info"


class TestOrderStatus:
    """Тесты для enum OrderStatus."""

    def test_values_match_database(self) -> None:
        """Значения совпадают с CHECK в таблице orders."""
        assert [s.value for s in OrderStatus] == [
            "pending",
            "active",
            "in_transit",
            "completed",
            "cancelled",
        ]

    @pytest.mark.parametrize(
        "status, terminal",
        [
            (OrderStatus.PENDING, False),
            (OrderStatus.ACTIVE, False),
            (OrderStatus.IN_TRANSIT, False),
            (OrderStatus.COMPLETED, True),
            (OrderStatus.CANCELLED, True),
        ],
    )
    def test_is_terminal(self, status: OrderStatus, terminal: bool) -> None:
        assert status.is_terminal is terminal

    def test_from_string(self) -> None:
        assert OrderStatus("in_transit") is OrderStatus.IN_TRANSIT


class TestServiceType:
    """Тесты для enum ServiceType."""

    def test_values(self) -> None:
        assert {s.value for s in ServiceType} == {"carpooling", "shopping", "large_items"}


class TestPaymentMethod:
    """Тесты для enum PaymentMethod."""

    def test_values(self) -> None:
        assert PaymentMethod.WALLET == "wallet"
        assert PaymentMethod.CASH == "cash"
        assert PaymentMethod.CARD == "card"


class TestChangeFeedConstants:
    """Тесты для констант ленты изменений."""

    def test_change_types(self) -> None:
        assert ChangeType("INSERT") is ChangeType.INSERT
        assert ChangeType("DELETE") is ChangeType.DELETE

    def test_orders_table(self) -> None:
        assert ORDERS_TABLE == "orders"

    def test_actors(self) -> None:
        assert {a.value for a in TransitionActor} == {"user", "operator"}
