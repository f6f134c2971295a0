# src/core/orders/store.py
"""
Локальный кэш заказов текущего пользователя.

Кэш всегда отражает одного пользователя. Изменения с сервера приходят
через ленту изменений и приводят к полной перезагрузке, а не к
частичному слиянию. Устаревшие результаты загрузки отбрасываются
по порядковому номеру запроса.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional

from src.common.constants import TypeMsg
from src.common.exceptions import FetchFailed, OrderNotFound
from src.common.logger import get_logger, log_error, log_info, log_warning
from src.core.orders.lifecycle import OrderLifecycle
from src.core.orders.models import Order, OrderCreateDTO
from src.core.orders.repository import OrderRepository
from src.infra.change_feed import ChangeEvent, FeedSubscription, PostgresChangeFeed
from src.infra.event_bus import DomainEvent, EventBus, EventTypes

if TYPE_CHECKING:
    from src.core.catalog.service import ServiceCatalog
    from src.core.session.context import SessionContext

logger = get_logger("order_store")


class OrderStore:
    """
    Кэш заказов и подписка на ленту изменений.
    Единственное место, где меняется кэш.
    """

    def __init__(
        self,
        repository: OrderRepository,
        lifecycle: OrderLifecycle,
        catalog: ServiceCatalog,
        feed: Optional[PostgresChangeFeed] = None,
        *,
        session: Optional[SessionContext] = None,
        event_bus: Optional[EventBus] = None,
        queue_size: Optional[int] = None,
    ) -> None:
        """
        Args:
            repository: Репозиторий заказов
            lifecycle: Машина состояний заказа
            catalog: Каталог услуг (разрешение service_id)
            feed: Лента изменений (без неё синхронизация отключена)
            session: Контекст сессии; смена пользователя вызывает bind_user
            event_bus: Шина событий для order.created
            queue_size: Размер очереди событий ленты
        """
        if queue_size is None:
            from src.config import settings
            queue_size = settings.feed.FEED_QUEUE_SIZE

        self._repo = repository
        self._lifecycle = lifecycle
        self._catalog = catalog
        self._feed = feed
        self._session = session
        self._event_bus = event_bus

        self._orders: list[Order] = []
        self._user_id: Optional[str] = None
        self._load_seq = 0
        self._closed = False

        self._subscription: Optional[FeedSubscription] = None
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=queue_size)
        self._consumer: Optional[asyncio.Task] = None

        if session is not None:
            session.add_listener(self.bind_user)

    # =========================================================================
    # СНИМКИ
    # =========================================================================

    @property
    def orders(self) -> tuple[Order, ...]:
        """Заказы текущего пользователя, новые первыми."""
        return tuple(self._orders)

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.is_active

    def get(self, order_id: str) -> Optional[Order]:
        """Заказ из кэша."""
        return next((order for order in self._orders if order.id == order_id), None)

    # =========================================================================
    # ЗАГРУЗКА
    # =========================================================================

    async def load(self, user_id: Optional[str] = None) -> tuple[Order, ...]:
        """
        Полностью заменяет кэш заказами пользователя.

        Применяется только результат последнего запущенного запроса.

        Args:
            user_id: Пользователь (по умолчанию текущий)

        Returns:
            Снимок кэша

        Raises:
            FetchFailed: ошибка БД (кэш не меняется)
        """
        if user_id is not None and user_id != self._user_id:
            self._switch_user(user_id)

        uid = self._user_id
        if uid is None:
            return self.orders

        self._load_seq += 1
        seq = self._load_seq

        orders = await self._repo.list_by_user(uid)

        if seq != self._load_seq or uid != self._user_id or self._closed:
            await log_info(
                f"Устаревшая загрузка заказов отброшена (#{seq}, актуальная #{self._load_seq})",
                type_msg=TypeMsg.DEBUG,
            )
            return self.orders

        self._orders = orders
        return self.orders

    def _switch_user(self, user_id: Optional[str]) -> None:
        """Очищает кэш и делает устаревшими все загрузки в полёте."""
        self._orders = []
        self._load_seq += 1
        self._user_id = user_id

    # =========================================================================
    # ИЗМЕНЕНИЯ
    # =========================================================================

    async def create(self, dto: OrderCreateDTO) -> Order:
        """
        Создаёт заказ и добавляет подтверждённую строку в кэш.

        Raises:
            ServiceNotFound: услуга не найдена однозначно
            FetchFailed: ошибка поиска услуги
            PersistFailed: ошибка записи (кэш не меняется)
        """
        service_id = await self._catalog.resolve_service_id(dto.service)
        order = await self._repo.create(dto, service_id)

        if order.user_id == self._user_id and self.get(order.id) is None:
            self._orders.insert(0, order)

        if self._event_bus is not None:
            await self._event_bus.publish(
                DomainEvent(
                    event_type=EventTypes.ORDER_CREATED,
                    payload={
                        "order_id": order.id,
                        "user_id": order.user_id,
                        "service_id": order.service_id,
                        "estimated_price": str(order.estimated_price),
                    },
                )
            )
        return order

    async def cancel(self, order_id: str) -> Order:
        """
        Отменяет заказ; в кэше меняется только статус этой записи.

        Raises:
            OrderNotFound: заказа нет
            IllegalTransition: заказ нельзя отменить
            PersistFailed: ошибка записи
        """
        order = self.get(order_id)
        if order is None:
            order = await self._repo.get_by_id(order_id)
        if order is None or order.user_id != self._user_id:
            raise OrderNotFound(f"Заказ {order_id} не найден")

        updated = await self._lifecycle.cancel(order)

        for index, cached in enumerate(self._orders):
            if cached.id == order_id:
                self._orders[index] = cached.model_copy(update={"status": updated.status})
                break
        return updated

    # =========================================================================
    # СЕССИЯ И ЛЕНТА ИЗМЕНЕНИЙ
    # =========================================================================

    async def start(self) -> None:
        """Привязывает кэш к пользователю из контекста сессии."""
        if self._session is not None:
            await self.bind_user(self._session.user_id)

    async def bind_user(self, user_id: Optional[str]) -> None:
        """
        Переключает кэш на другого пользователя.
        Кэш очищается до начала новой загрузки.
        """
        if self._closed or user_id == self._user_id:
            return

        self._switch_user(user_id)
        self._drain_queue()
        await self._release_subscription()

        if user_id is None or user_id != self._user_id:
            return

        await self._subscribe(user_id)
        if user_id != self._user_id:
            return

        try:
            await self.load()
        except FetchFailed:
            await log_warning(
                f"Не удалось загрузить заказы пользователя {user_id}",
                extra={"user_id": user_id},
            )

    async def _subscribe(self, user_id: str) -> None:
        if self._feed is None:
            return

        subscription = await self._feed.subscribe(self._on_change)
        if self._closed or user_id != self._user_id:
            # пользователь сменился, пока шла подписка
            await subscription.release()
            return
        self._subscription = subscription
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.get_running_loop().create_task(self._consume())

    def _on_change(self, event: ChangeEvent) -> None:
        """Listener ленты: только кладёт событие в очередь."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Очередь ленты заполнена, событие {event.change_type.value} пропущено")

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._apply(event)
            except Exception as e:
                await log_error(f"Ошибка обработки события ленты: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    async def _apply(self, event: ChangeEvent) -> None:
        if self._closed or event.owner_id is None or event.owner_id != self._user_id:
            await log_info(
                f"Событие {event.change_type.value} чужого пользователя пропущено",
                type_msg=TypeMsg.DEBUG,
            )
            return

        try:
            await self.load()
        except FetchFailed as e:
            await log_error(f"Перезагрузка по ленте изменений не удалась: {e}")

    async def wait_feed_idle(self) -> None:
        """Дожидается обработки всех событий в очереди."""
        await self._queue.join()

    def _drain_queue(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    async def _release_subscription(self) -> None:
        if self._subscription is not None:
            subscription, self._subscription = self._subscription, None
            await subscription.release()

    async def close(self) -> None:
        """Освобождает подписку и очищает кэш."""
        if self._closed:
            return
        self._closed = True

        if self._session is not None:
            self._session.remove_listener(self.bind_user)

        await self._release_subscription()
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

        self._drain_queue()
        self._switch_user(None)
