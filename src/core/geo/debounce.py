# src/core/geo/debounce.py
"""
Отменяемый debounce-таймер для асинхронных функций.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable


class Debouncer:
    """
    Откладывает вызов функции на delay секунд; каждый новый вызов
    сбрасывает таймер, так что выполняется только последний из серии.

    cancel() снимает ожидающий таймер и закрывает debouncer: после него
    новые вызовы игнорируются. Уже запущенный вызов не прерывается,
    его результат отбрасывает сам владелец.
    """

    def __init__(self, func: Callable[..., Awaitable[Any]], delay: float) -> None:
        if delay < 0:
            raise ValueError("delay не может быть отрицательным")
        self._func = func
        self._delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._running: set[asyncio.Task] = set()
        self._cancelled = False

    @property
    def pending(self) -> bool:
        """Есть ли отложенный вызов."""
        return self._handle is not None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        if self._cancelled:
            return

        self._drop_pending()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire, args, kwargs)

    def _fire(self, args: tuple, kwargs: dict) -> None:
        self._handle = None
        if self._cancelled:
            return

        task = asyncio.get_running_loop().create_task(self._func(*args, **kwargs))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    def _drop_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def cancel(self) -> None:
        """Снимает отложенный вызов и закрывает debouncer."""
        self._cancelled = True
        self._drop_pending()

    async def wait(self) -> None:
        """Дожидается завершения уже запущенных вызовов."""
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
