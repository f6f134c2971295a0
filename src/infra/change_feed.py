# src/infra/change_feed.py
"""
Лента изменений таблицы orders.

Триггер notify_orders_change (migrations/init.sql) публикует каждое
изменение строки через pg_notify; подписка слушает канал на выделенном
соединении asyncpg и передаёт разобранные события обработчику.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable

from asyncpg import Connection

from src.common.constants import ORDERS_TABLE, ChangeType
from src.common.logger import get_logger, log_info, log_error
from src.infra.database import DatabaseManager

logger = get_logger("change_feed")


@dataclass(frozen=True)
class ChangeEvent:
    """Изменение одной строки таблицы."""
    table: str
    change_type: ChangeType
    record: dict[str, Any] | None = None
    old_record: dict[str, Any] | None = field(default=None)

    @property
    def owner_id(self) -> str | None:
        """user_id владельца строки (для DELETE из старой версии)."""
        for row in (self.record, self.old_record):
            if row and row.get("user_id") is not None:
                return str(row["user_id"])
        return None

    @classmethod
    def from_payload(cls, payload: str) -> ChangeEvent:
        """
        Разбирает JSON из pg_notify.

        Raises:
            ValueError: payload не является корректным событием
        """
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("payload должен быть объектом")
        return cls(
            table=data.get("table", ""),
            change_type=ChangeType(data.get("type")),
            record=data.get("record"),
            old_record=data.get("old_record"),
        )


ChangeHandler = Callable[[ChangeEvent], None]


class FeedSubscription:
    """
    Активная подписка на канал.
    release() идемпотентен: соединение освобождается ровно один раз.
    """

    def __init__(
        self,
        db: DatabaseManager,
        connection: Connection,
        channel: str,
        listener: Callable[..., None],
    ) -> None:
        self._db = db
        self._connection = connection
        self._channel = channel
        self._listener = listener
        self._released = False

    @property
    def is_active(self) -> bool:
        return not self._released

    async def release(self) -> None:
        """Снимает listener и возвращает соединение в пул."""
        if self._released:
            return
        self._released = True

        try:
            await self._connection.remove_listener(self._channel, self._listener)
        except Exception as e:
            await log_error(f"Ошибка отписки от канала {self._channel}: {e}")
        finally:
            await self._db.release(self._connection)

        await log_info(f"Подписка на {self._channel} освобождена")


class PostgresChangeFeed:
    """Подписки на изменения таблицы orders через LISTEN/NOTIFY."""

    def __init__(self, db: DatabaseManager, channel: str | None = None) -> None:
        if channel is None:
            from src.config import settings
            channel = settings.feed.CHANGE_FEED_CHANNEL

        self._db = db
        self._channel = channel

    @property
    def channel(self) -> str:
        return self._channel

    async def subscribe(self, handler: ChangeHandler) -> FeedSubscription:
        """
        Начинает слушать канал.

        Args:
            handler: Синхронный обработчик; вызывается в цикле событий
                     для каждого изменения таблицы orders

        Returns:
            Подписка, которую нужно освободить через release()
        """
        def listener(connection: Connection, pid: int, channel: str, payload: str) -> None:
            try:
                event = ChangeEvent.from_payload(payload)
            except (ValueError, TypeError) as e:
                logger.warning(f"Некорректное событие в канале {channel}: {e}")
                return

            if event.table != ORDERS_TABLE:
                return

            try:
                handler(event)
            except Exception as e:
                logger.error(f"Ошибка обработчика ленты изменений: {e}", exc_info=True)

        connection = await self._db.acquire_dedicated()
        try:
            await connection.add_listener(self._channel, listener)
        except Exception:
            await self._db.release(connection)
            raise

        await log_info(f"Подписка на канал {self._channel} активна")
        return FeedSubscription(self._db, connection, self._channel, listener)
