#!/usr/bin/env python3
# main.py
"""
Точка входа Order Hub.
Поднимает инфраструктуру, собирает компоненты заказов для одной
пользовательской сессии и держит синхронизацию до сигнала остановки.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from dataclasses import dataclass
from typing import Optional

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info, setup_logging
from src.core.catalog.service import ServiceCatalog
from src.core.geo.provider import MapboxGeocoder
from src.core.orders.booking import BookingService
from src.core.orders.lifecycle import OrderLifecycle
from src.core.orders.repository import OrderRepository, ServiceRepository
from src.core.orders.store import OrderStore
from src.core.session.context import AuthProvider, RedisSessionStore, SessionContext
from src.infra.change_feed import PostgresChangeFeed
from src.infra.database import DatabaseManager, close_db, get_db, init_db
from src.infra.event_bus import EventBus, close_event_bus, get_event_bus, init_event_bus
from src.infra.redis_client import RedisClient, close_redis, get_redis, init_redis


@dataclass
class OrderHub:
    """Компоненты одной пользовательской сессии."""
    session: SessionContext
    catalog: ServiceCatalog
    store: OrderStore
    booking: BookingService
    geocoder: MapboxGeocoder

    async def start(self) -> Optional[str]:
        """
        Определяет пользователя, загружает его заказы и следит за сменой
        пользователя у провайдера аутентификации (если он задан).
        """
        user_id = await self.session.resolve()
        await self.store.start()
        self.session.start_watching()
        return user_id

    async def close(self) -> None:
        """Освобождает подписку, HTTP-клиент и слушателей сессии."""
        await self.store.close()
        await self.session.close()
        await self.geocoder.close()


def build_order_hub(
    session_key: str,
    *,
    db: Optional[DatabaseManager] = None,
    redis: Optional[RedisClient] = None,
    event_bus: Optional[EventBus] = None,
    auth_provider: Optional[AuthProvider] = None,
) -> OrderHub:
    """
    Собирает компоненты на общих клиентах инфраструктуры.

    Args:
        session_key: Ключ сессии в Redis
        db: Менеджер БД (по умолчанию глобальный)
        redis: Клиент Redis (по умолчанию глобальный)
        event_bus: Шина событий (по умолчанию глобальная)
        auth_provider: Запасной источник пользователя
    """
    db = db or get_db()
    redis = redis or get_redis()
    event_bus = event_bus or get_event_bus()

    session = SessionContext(RedisSessionStore(redis, session_key), auth_provider)
    repository = OrderRepository(db)
    catalog = ServiceCatalog(ServiceRepository(db))
    store = OrderStore(
        repository,
        OrderLifecycle(repository, event_bus),
        catalog,
        PostgresChangeFeed(db),
        session=session,
        event_bus=event_bus,
    )
    return OrderHub(
        session=session,
        catalog=catalog,
        store=store,
        booking=BookingService(store),
        geocoder=MapboxGeocoder(),
    )


async def init_infrastructure() -> None:
    """Инициализирует все подключения к инфраструктуре."""
    await log_info("Инициализация инфраструктуры...", type_msg=TypeMsg.INFO)
    await init_db()
    await init_redis()
    await init_event_bus()
    await log_info("Инфраструктура инициализирована", type_msg=TypeMsg.INFO)


async def close_infrastructure() -> None:
    """Закрывает все подключения."""
    await close_event_bus()
    await close_redis()
    await close_db()
    await log_info("Подключения закрыты", type_msg=TypeMsg.INFO)


def setup_signal_handlers(shutdown: asyncio.Event) -> None:
    """SIGINT и SIGTERM завершают работу через shutdown."""
    loop = asyncio.get_running_loop()
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, shutdown.set)
    except NotImplementedError:
        # Windows не поддерживает add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: loop.call_soon_threadsafe(shutdown.set))


async def main(session_key: str, auth_provider: Optional[AuthProvider] = None) -> None:
    """
    Держит кэш заказов сессии синхронизированным до остановки.
    Из командной строки запускается без провайдера: пользователь берётся
    только из сессии в Redis.
    """
    setup_logging()
    shutdown = asyncio.Event()
    setup_signal_handlers(shutdown)

    hub: Optional[OrderHub] = None
    try:
        await init_infrastructure()
        hub = build_order_hub(session_key, auth_provider=auth_provider)

        user_id = await hub.start()
        await log_info(
            f"Сессия {session_key}: пользователь {user_id}, заказов {len(hub.store.orders)}",
            type_msg=TypeMsg.INFO,
        )

        await shutdown.wait()
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}", exc_info=True)
        raise
    finally:
        if hub is not None:
            await hub.close()
        try:
            await close_infrastructure()
        except Exception as e:
            await log_error(f"Ошибка при закрытии подключений: {e}")
        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


if __name__ == "__main__":
    if len(sys.argv) != 2 or sys.argv[1] in ("--help", "-h"):
        print("Использование: python main.py <session_key>")
        sys.exit(0 if len(sys.argv) == 2 else 1)

    try:
        asyncio.run(main(sys.argv[1]))
    except KeyboardInterrupt:
        pass
