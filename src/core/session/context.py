# src/core/session/context.py
"""
Контекст пользовательской сессии.

Источник user_id выбирается в явном порядке: сначала сессия в Redis,
затем провайдер аутентификации. Изменения провайдера переразрешаются
тем же порядком, подписчики (OrderStore.bind_user) получают новый id.
"""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol

from redis.exceptions import RedisError

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info, log_warning
from src.infra.redis_client import RedisClient

UserListener = Callable[[Optional[str]], Awaitable[None]]


class AuthProvider(Protocol):
    """Внешний провайдер аутентификации."""

    async def current_user_id(self) -> Optional[str]:
        ...

    def changes(self) -> AsyncIterator[Optional[str]]:
        """Поток изменений состояния входа (вход, выход, смена пользователя)."""
        ...


class RedisSessionStore:
    """Сессия в Redis: JSON под ключом session:{key} с полем id."""

    def __init__(self, redis: RedisClient, session_key: str) -> None:
        self._redis = redis
        self._session_key = session_key

    @property
    def key(self) -> str:
        return f"session:{self._session_key}"

    async def get_user_id(self) -> Optional[str]:
        """
        user_id из сессии.

        Returns:
            id или None, если сессии нет либо она не разбирается
        """
        try:
            data = await self._redis.get_json(self.key)
        except json.JSONDecodeError as e:
            await log_warning(f"Сессия {self.key} не является JSON: {e}")
            return None
        except RedisError as e:
            await log_error(f"Ошибка чтения сессии {self.key}: {e}")
            return None

        if not isinstance(data, dict):
            if data is not None:
                await log_warning(f"Сессия {self.key} имеет неожиданный формат")
            return None

        user_id = data.get("id")
        return str(user_id) if user_id else None

    async def save(self, user_id: str, ttl: Optional[int] = None) -> None:
        """Сохраняет сессию."""
        await self._redis.set_json(self.key, {"id": user_id}, ttl=ttl)

    async def clear(self) -> None:
        await self._redis.delete(self.key)


class SessionContext:
    """
    Текущий пользователь, передаваемый явно в OrderStore и AddressResolver.
    """

    def __init__(
        self,
        primary: Optional[RedisSessionStore] = None,
        fallback: Optional[AuthProvider] = None,
    ) -> None:
        """
        Args:
            primary: Сессия в Redis (проверяется первой)
            fallback: Провайдер аутентификации
        """
        self._primary = primary
        self._fallback = fallback
        self._user_id: Optional[str] = None
        self._listeners: list[UserListener] = []
        self._watch_task: Optional[asyncio.Task] = None

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def add_listener(self, listener: UserListener) -> None:
        """Подписывает на смену пользователя."""
        self._listeners.append(listener)

    def remove_listener(self, listener: UserListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def resolve(self) -> Optional[str]:
        """
        Определяет пользователя: Redis, затем провайдер аутентификации.
        При смене id уведомляет подписчиков.
        """
        user_id: Optional[str] = None
        if self._primary is not None:
            user_id = await self._primary.get_user_id()
        if user_id is None and self._fallback is not None:
            user_id = await self._fallback.current_user_id()

        await self._set_user(user_id)
        return user_id

    async def _set_user(self, user_id: Optional[str]) -> None:
        if user_id == self._user_id:
            return

        previous, self._user_id = self._user_id, user_id
        await log_info(
            f"Пользователь сессии изменён: {previous} -> {user_id}",
            type_msg=TypeMsg.INFO,
        )
        for listener in list(self._listeners):
            await listener(user_id)

    async def watch(self, provider: Optional[AuthProvider] = None) -> None:
        """Переразрешает пользователя на каждое изменение провайдера."""
        source = provider or self._fallback
        if source is None:
            return
        async for _ in source.changes():
            await self.resolve()

    def start_watching(self, provider: Optional[AuthProvider] = None) -> asyncio.Task:
        """Запускает watch() фоновой задачей."""
        if self._watch_task is None or self._watch_task.done():
            self._watch_task = asyncio.get_running_loop().create_task(self.watch(provider))
        return self._watch_task

    async def close(self) -> None:
        """Останавливает наблюдение и отписывает слушателей."""
        if self._watch_task is not None and not self._watch_task.done():
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
        self._watch_task = None
        self._listeners.clear()
