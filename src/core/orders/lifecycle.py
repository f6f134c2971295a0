# src/core/orders/lifecycle.py
"""
Машина состояний заказа.

    pending -> active -> in_transit -> completed   (оператор)
    pending | active -> cancelled                  (пользователь)

completed и cancelled терминальны. Запись в БД условная, поэтому
параллельное изменение на сервере даёт IllegalTransition, а не перезапись.
"""

from __future__ import annotations

from typing import Optional

from src.common.constants import OrderStatus, TransitionActor, TypeMsg
from src.common.exceptions import FetchFailed, IllegalTransition
from src.common.logger import log_info, log_warning
from src.core.orders.models import Order
from src.core.orders.repository import OrderRepository
from src.infra.event_bus import DomainEvent, EventBus, EventTypes

TRANSITIONS: dict[TransitionActor, dict[OrderStatus, frozenset[OrderStatus]]] = {
    TransitionActor.USER: {
        OrderStatus.PENDING: frozenset({OrderStatus.CANCELLED}),
        OrderStatus.ACTIVE: frozenset({OrderStatus.CANCELLED}),
    },
    TransitionActor.OPERATOR: {
        OrderStatus.PENDING: frozenset({OrderStatus.ACTIVE}),
        OrderStatus.ACTIVE: frozenset({OrderStatus.IN_TRANSIT}),
        OrderStatus.IN_TRANSIT: frozenset({OrderStatus.COMPLETED}),
    },
}


def can_transition(
    current: OrderStatus,
    target: OrderStatus,
    actor: TransitionActor = TransitionActor.USER,
) -> bool:
    """Допустим ли переход для данного инициатора."""
    if current.is_terminal:
        return False
    return target in TRANSITIONS[actor].get(current, frozenset())


def allowed_sources(
    target: OrderStatus,
    actor: TransitionActor = TransitionActor.USER,
) -> frozenset[OrderStatus]:
    """Статусы, из которых инициатор может перевести заказ в target."""
    return frozenset(
        source for source, targets in TRANSITIONS[actor].items() if target in targets
    )


def ensure_transition(
    current: OrderStatus,
    target: OrderStatus,
    actor: TransitionActor = TransitionActor.USER,
) -> None:
    """
    Raises:
        IllegalTransition: переход недопустим
    """
    if not can_transition(current, target, actor):
        raise IllegalTransition(current, target)


class OrderLifecycle:
    """Применяет переходы статусов к хранимым заказам."""

    def __init__(self, repository: OrderRepository, event_bus: Optional[EventBus] = None) -> None:
        """
        Args:
            repository: Репозиторий заказов
            event_bus: Шина событий (без неё события не публикуются)
        """
        self._repo = repository
        self._event_bus = event_bus

    async def request(
        self,
        order: Order,
        target: OrderStatus,
        actor: TransitionActor = TransitionActor.USER,
    ) -> Order:
        """
        Переводит заказ в target.

        Args:
            order: Заказ в известном клиенту состоянии
            target: Целевой статус
            actor: Инициатор перехода

        Returns:
            Заказ с новым статусом

        Raises:
            IllegalTransition: переход недопустим (в том числе из-за
                параллельного изменения на сервере)
            PersistFailed: ошибка записи
        """
        ensure_transition(order.status, target, actor)

        new_status = await self._repo.update_status_if(
            order.id, target, allowed_sources(target, actor)
        )
        if new_status is None:
            try:
                current = await self._repo.get_status(order.id) or order.status
            except FetchFailed:
                current = order.status
            await log_warning(
                f"Переход заказа {order.id} в {target.value} отклонён: статус в БД {current.value}",
                extra={"order_id": order.id, "user_id": order.user_id},
            )
            raise IllegalTransition(current, target)

        await log_info(
            f"Заказ {order.id}: {order.status.value} -> {new_status.value} ({actor.value})",
            type_msg=TypeMsg.INFO,
        )
        await self._publish(order, new_status, actor)
        return order.model_copy(update={"status": new_status})

    async def cancel(self, order: Order) -> Order:
        """Отмена заказа пользователем."""
        return await self.request(order, OrderStatus.CANCELLED, TransitionActor.USER)

    async def _publish(self, order: Order, new_status: OrderStatus, actor: TransitionActor) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(
            DomainEvent(
                event_type=EventTypes.ORDER_STATUS_CHANGED,
                payload={
                    "order_id": order.id,
                    "user_id": order.user_id,
                    "old_status": order.status.value,
                    "new_status": new_status.value,
                    "actor": actor.value,
                },
            )
        )
