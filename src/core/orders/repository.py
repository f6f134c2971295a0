# src/core/orders/repository.py
"""
Репозитории заказов и услуг (PostgreSQL).

Ошибки asyncpg логируются и поднимаются как FetchFailed (чтение)
или PersistFailed (запись).
"""

from __future__ import annotations

from typing import Iterable, Optional

import asyncpg

from src.common.constants import OrderStatus, TypeMsg
from src.common.exceptions import FetchFailed, PersistFailed
from src.common.logger import log_error, log_info
from src.core.orders.models import Order, OrderCreateDTO
from src.infra.database import DatabaseManager

# Ошибки БД, которые переводятся в таксономию приложения
DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

_ORDER_COLUMNS = """
    o.id, o.user_id, o.service_id, o.status,
    o.pickup_location, o.dropoff_location,
    o.estimated_price, o.payment_method, o.created_at,
    s.name AS service_name
"""


class OrderRepository:
    """Репозиторий заказов."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def list_by_user(self, user_id: str) -> list[Order]:
        """
        Все заказы пользователя, новые первыми.

        Raises:
            FetchFailed: ошибка БД
        """
        try:
            rows = await self._db.fetch(
                f"""
                SELECT {_ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN services s ON s.id = o.service_id
                WHERE o.user_id = $1
                ORDER BY o.created_at DESC
                """,
                user_id,
            )
        except DB_ERRORS as e:
            await log_error(
                f"Ошибка загрузки заказов пользователя {user_id}: {e}",
                extra={"user_id": user_id},
            )
            raise FetchFailed(str(e)) from e

        return [Order.from_record(row) for row in rows]

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """
        Заказ по ID.

        Raises:
            FetchFailed: ошибка БД
        """
        try:
            row = await self._db.fetchrow(
                f"""
                SELECT {_ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN services s ON s.id = o.service_id
                WHERE o.id = $1
                """,
                order_id,
            )
        except DB_ERRORS as e:
            await log_error(f"Ошибка получения заказа {order_id}: {e}")
            raise FetchFailed(str(e)) from e

        return Order.from_record(row) if row is not None else None

    async def create(self, dto: OrderCreateDTO, service_id: str) -> Order:
        """
        Создаёт заказ в статусе pending.

        Args:
            dto: Данные заказа
            service_id: Разрешённый UUID услуги

        Returns:
            Подтверждённая строка заказа

        Raises:
            PersistFailed: ошибка БД
        """
        try:
            row = await self._db.fetchrow(
                """
                INSERT INTO orders (
                    user_id, service_id, status,
                    pickup_location, dropoff_location,
                    estimated_price, payment_method
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING id, user_id, service_id, status,
                          pickup_location, dropoff_location,
                          estimated_price, payment_method, created_at
                """,
                dto.user_id,
                service_id,
                OrderStatus.PENDING.value,
                dto.pickup_location,
                dto.dropoff_location,
                dto.estimated_price,
                dto.payment_method.value,
            )
        except DB_ERRORS as e:
            await log_error(
                f"Ошибка создания заказа: {e}",
                extra={"user_id": dto.user_id, "service_id": service_id},
            )
            raise PersistFailed(str(e)) from e

        if row is None:
            raise PersistFailed("INSERT не вернул строку")

        order = Order.from_record(row).model_copy(update={"service_name": dto.service.name})
        await log_info(f"Заказ {order.id} создан", type_msg=TypeMsg.INFO)
        return order

    async def update_status_if(
        self,
        order_id: str,
        target: OrderStatus,
        allowed: Iterable[OrderStatus],
    ) -> Optional[OrderStatus]:
        """
        Условная смена статуса: строка меняется, только если её текущий
        статус входит в allowed.

        Returns:
            Новый статус или None, если условие не выполнено

        Raises:
            PersistFailed: ошибка БД
        """
        try:
            value = await self._db.fetchval(
                """
                UPDATE orders
                SET status = $2
                WHERE id = $1 AND status = ANY($3::text[])
                RETURNING status
                """,
                order_id,
                target.value,
                [status.value for status in allowed],
            )
        except DB_ERRORS as e:
            await log_error(f"Ошибка смены статуса заказа {order_id}: {e}")
            raise PersistFailed(str(e)) from e

        return OrderStatus(value) if value is not None else None

    async def get_status(self, order_id: str) -> Optional[OrderStatus]:
        """
        Текущий статус заказа в БД.

        Raises:
            FetchFailed: ошибка БД
        """
        try:
            value = await self._db.fetchval("SELECT status FROM orders WHERE id = $1", order_id)
        except DB_ERRORS as e:
            await log_error(f"Ошибка чтения статуса заказа {order_id}: {e}")
            raise FetchFailed(str(e)) from e

        return OrderStatus(value) if value is not None else None


class ServiceRepository:
    """Чтение таблицы services."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def find_ids_by_name(self, name: str) -> list[str]:
        """
        UUID услуг с данным названием (без учёта регистра).

        Raises:
            FetchFailed: ошибка БД
        """
        try:
            rows = await self._db.fetch(
                "SELECT id FROM services WHERE lower(name) = lower($1)",
                name,
            )
        except DB_ERRORS as e:
            await log_error(f"Ошибка поиска услуги '{name}': {e}")
            raise FetchFailed(str(e)) from e

        return [str(row["id"]) for row in rows]
