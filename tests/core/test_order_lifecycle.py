# tests/core/test_order_lifecycle.py
"""
Тесты для машины состояний заказа.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.common.constants import OrderStatus, TransitionActor
from src.common.exceptions import FetchFailed, IllegalTransition, PersistFailed
from src.core.orders.lifecycle import (
    OrderLifecycle,
    allowed_sources,
    can_transition,
    ensure_transition,
)
from src.infra.event_bus import EventTypes


@pytest.fixture
def mock_repo() -> MagicMock:
    """Мок OrderRepository."""
    repo = MagicMock()
    repo.update_status_if = AsyncMock()
    repo.get_status = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def lifecycle(mock_repo: MagicMock, mock_event_bus: AsyncMock) -> OrderLifecycle:
    return OrderLifecycle(mock_repo, mock_event_bus)


class TestTransitionTable:
    """Тесты таблицы переходов."""

    @pytest.mark.parametrize("current", [OrderStatus.PENDING, OrderStatus.ACTIVE])
    def test_user_can_cancel_early_states(self, current: OrderStatus) -> None:
        assert can_transition(current, OrderStatus.CANCELLED, TransitionActor.USER)

    def test_user_cannot_cancel_in_transit(self) -> None:
        assert not can_transition(OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED)

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.ACTIVE),
            (OrderStatus.ACTIVE, OrderStatus.IN_TRANSIT),
            (OrderStatus.IN_TRANSIT, OrderStatus.COMPLETED),
        ],
    )
    def test_forward_path_is_operator_only(self, current: OrderStatus, target: OrderStatus) -> None:
        assert can_transition(current, target, TransitionActor.OPERATOR)
        assert not can_transition(current, target, TransitionActor.USER)

    def test_operator_cannot_skip_states(self) -> None:
        assert not can_transition(OrderStatus.PENDING, OrderStatus.COMPLETED, TransitionActor.OPERATOR)

    @pytest.mark.parametrize("terminal", [OrderStatus.COMPLETED, OrderStatus.CANCELLED])
    @pytest.mark.parametrize("target", list(OrderStatus))
    @pytest.mark.parametrize("actor", list(TransitionActor))
    def test_terminal_states_accept_nothing(
        self,
        terminal: OrderStatus,
        target: OrderStatus,
        actor: TransitionActor,
    ) -> None:
        assert not can_transition(terminal, target, actor)

    def test_allowed_sources_for_cancel(self) -> None:
        assert allowed_sources(OrderStatus.CANCELLED) == {OrderStatus.PENDING, OrderStatus.ACTIVE}

    def test_ensure_raises_with_states(self) -> None:
        with pytest.raises(IllegalTransition) as exc_info:
            ensure_transition(OrderStatus.COMPLETED, OrderStatus.CANCELLED)
        assert exc_info.value.current == OrderStatus.COMPLETED
        assert exc_info.value.target == OrderStatus.CANCELLED


class TestOrderLifecycle:
    """Тесты для OrderLifecycle.request."""

    @pytest.mark.asyncio
    async def test_cancel_pending_order(
        self,
        lifecycle: OrderLifecycle,
        mock_repo: MagicMock,
        mock_event_bus: AsyncMock,
        order_factory,
        user_id: str,
    ) -> None:
        """Отмена меняет статус и публикует событие."""
        order = order_factory(user_id)
        mock_repo.update_status_if.return_value = OrderStatus.CANCELLED

        updated = await lifecycle.cancel(order)

        assert updated.status == OrderStatus.CANCELLED
        assert order.status == OrderStatus.PENDING
        args = mock_repo.update_status_if.await_args.args
        assert args[0] == order.id
        assert args[1] == OrderStatus.CANCELLED
        assert set(args[2]) == {OrderStatus.PENDING, OrderStatus.ACTIVE}

        event = mock_event_bus.publish.await_args.args[0]
        assert event.event_type == EventTypes.ORDER_STATUS_CHANGED
        assert event.payload["old_status"] == "pending"
        assert event.payload["new_status"] == "cancelled"
        assert event.payload["actor"] == "user"

    @pytest.mark.asyncio
    async def test_illegal_transition_does_not_write(
        self,
        lifecycle: OrderLifecycle,
        mock_repo: MagicMock,
        mock_event_bus: AsyncMock,
        order_factory,
        user_id: str,
    ) -> None:
        """Недопустимый переход не доходит до БД."""
        order = order_factory(user_id, OrderStatus.COMPLETED)

        with pytest.raises(IllegalTransition):
            await lifecycle.cancel(order)

        mock_repo.update_status_if.assert_not_awaited()
        mock_event_bus.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_change_raises_illegal_transition(
        self,
        lifecycle: OrderLifecycle,
        mock_repo: MagicMock,
        mock_event_bus: AsyncMock,
        order_factory,
        user_id: str,
    ) -> None:
        """Условная запись не прошла: заказ уже в пути на сервере."""
        order = order_factory(user_id, OrderStatus.ACTIVE)
        mock_repo.update_status_if.return_value = None
        mock_repo.get_status.return_value = OrderStatus.IN_TRANSIT

        with pytest.raises(IllegalTransition) as exc_info:
            await lifecycle.cancel(order)

        assert exc_info.value.current == OrderStatus.IN_TRANSIT
        mock_event_bus.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_status_read_failure_uses_known_status(
        self,
        lifecycle: OrderLifecycle,
        mock_repo: MagicMock,
        order_factory,
        user_id: str,
    ) -> None:
        order = order_factory(user_id)
        mock_repo.update_status_if.return_value = None
        mock_repo.get_status.side_effect = FetchFailed("down")

        with pytest.raises(IllegalTransition) as exc_info:
            await lifecycle.cancel(order)

        assert exc_info.value.current == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_persist_failure_propagates(
        self,
        lifecycle: OrderLifecycle,
        mock_repo: MagicMock,
        mock_event_bus: AsyncMock,
        order_factory,
        user_id: str,
    ) -> None:
        order = order_factory(user_id)
        mock_repo.update_status_if.side_effect = PersistFailed("down")

        with pytest.raises(PersistFailed):
            await lifecycle.cancel(order)

        mock_event_bus.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_operator_forward_transition(
        self,
        lifecycle: OrderLifecycle,
        mock_repo: MagicMock,
        order_factory,
        user_id: str,
    ) -> None:
        order = order_factory(user_id, OrderStatus.ACTIVE)
        mock_repo.update_status_if.return_value = OrderStatus.IN_TRANSIT

        updated = await lifecycle.request(order, OrderStatus.IN_TRANSIT, TransitionActor.OPERATOR)

        assert updated.status == OrderStatus.IN_TRANSIT

    @pytest.mark.asyncio
    async def test_without_event_bus(self, mock_repo: MagicMock, order_factory, user_id: str) -> None:
        """Без шины событий переход выполняется."""
        mock_repo.update_status_if.return_value = OrderStatus.CANCELLED
        lifecycle = OrderLifecycle(mock_repo)

        updated = await lifecycle.cancel(order_factory(user_id))

        assert updated.status == OrderStatus.CANCELLED
