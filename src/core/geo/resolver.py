# src/core/geo/resolver.py
"""
Разрешение адресов для одного поля ввода.

Подсказки по мере ввода (с debounce), определение адреса по текущей
позиции устройства. Наружу ошибки не выходят: вызывающий получает
признак валидности через on_validation, а причина сохраняется
в last_error и в логе.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

import httpx

from src.common.exceptions import (
    FetchFailed,
    NoAddressFound,
    NotInServiceArea,
    OrderHubError,
)
from src.common.logger import log_error, log_warning
from src.core.geo.debounce import Debouncer
from src.core.geo.models import Candidate, iter_candidates
from src.core.geo.provider import GeolocationSource, MapboxGeocoder

if TYPE_CHECKING:
    from src.core.session.context import SessionContext

SuggestionsCallback = Callable[[list[Candidate]], None]
ValidationCallback = Callable[[bool], None]

# Ошибки геокодера, которые превращаются в валидность False
_LOOKUP_ERRORS = (httpx.HTTPError, ValueError, KeyError, TypeError)


class AddressResolver:
    """
    Разрешатель адреса для одного поля формы.

    Жизненный цикл: создаётся вместе с полем ввода, close() вызывается
    при его удалении. После close() ни один колбэк не вызывается.
    """

    def __init__(
        self,
        geocoder: MapboxGeocoder,
        geolocation: Optional[GeolocationSource] = None,
        *,
        on_suggestions: Optional[SuggestionsCallback] = None,
        on_validation: Optional[ValidationCallback] = None,
        session: Optional[SessionContext] = None,
        delay: Optional[float] = None,
        min_query_length: Optional[int] = None,
    ) -> None:
        """
        Args:
            geocoder: Геокодер
            geolocation: Источник координат устройства
            on_suggestions: Получает список подсказок
            on_validation: Получает признак валидности поля
            session: Контекст сессии (user_id в логах)
            delay: Окно debounce в секундах (из конфига если None)
            min_query_length: Минимальная длина запроса (из конфига если None)
        """
        if delay is None or min_query_length is None:
            from src.config import settings
            delay = settings.booking.DEBOUNCE_DELAY if delay is None else delay
            if min_query_length is None:
                min_query_length = settings.booking.MIN_QUERY_LENGTH

        self._geocoder = geocoder
        self._geolocation = geolocation
        self._on_suggestions = on_suggestions
        self._on_validation = on_validation
        self._session = session
        self._min_query_length = min_query_length

        self._debouncer = Debouncer(self.fetch_suggestions, delay)
        self._suggestions: list[Candidate] = []
        self._generation = 0
        self._resolving = False
        self._closed = False
        self.last_error: Optional[OrderHubError] = None

    # =========================================================================
    # СОСТОЯНИЕ
    # =========================================================================

    @property
    def suggestions(self) -> tuple[Candidate, ...]:
        return tuple(self._suggestions)

    @property
    def is_resolving(self) -> bool:
        return self._resolving

    @property
    def closed(self) -> bool:
        return self._closed

    def _log_extra(self, **extra: object) -> dict[str, object]:
        if self._session is not None and self._session.user_id:
            extra["user_id"] = self._session.user_id
        return extra

    def _publish(self, suggestions: list[Candidate], valid: bool) -> None:
        """Обновляет подсказки и сообщает валидность (если не закрыт)."""
        if self._closed:
            return
        self._suggestions = suggestions
        if self._on_suggestions is not None:
            self._on_suggestions(list(suggestions))
        if self._on_validation is not None:
            self._on_validation(valid)

    # =========================================================================
    # ПОДСКАЗКИ
    # =========================================================================

    def suggest(self, query: str) -> None:
        """Запрашивает подсказки с debounce: выполнится только последний вызов серии."""
        self._debouncer(query)

    async def fetch_suggestions(self, query: str) -> list[Candidate]:
        """
        Поиск подсказок без debounce.

        Returns:
            Подсказки с адресом и координатами; пустой список при коротком
            запросе, ошибке или если поиск устарел / разрешатель закрыт
        """
        self._generation += 1
        generation = self._generation

        if not query or len(query.strip()) < self._min_query_length:
            self._publish([], False)
            return []

        try:
            features = await self._geocoder.forward(query.strip())
            candidates = list(iter_candidates(features))
        except (OrderHubError, *_LOOKUP_ERRORS) as e:
            if generation != self._generation:
                return []
            self.last_error = e if isinstance(e, OrderHubError) else FetchFailed(str(e))
            await log_error(
                f"Ошибка поиска адреса '{query}': {e}",
                extra=self._log_extra(query=query),
            )
            self._publish([], False)
            return []

        # Пока шёл запрос, пользователь ввёл новый текст или поле закрыто
        if generation != self._generation or self._closed:
            return []

        self.last_error = None
        self._publish(candidates, bool(candidates))
        return candidates

    def select(self, candidate: Candidate) -> None:
        """Пользователь выбрал подсказку."""
        self._generation += 1
        self._publish([], True)

    # =========================================================================
    # ТЕКУЩЕЕ МЕСТОПОЛОЖЕНИЕ
    # =========================================================================

    async def resolve_current_position(self) -> Optional[Candidate]:
        """
        Определяет адрес по координатам устройства.

        Повторный вызов, пока предыдущий не завершён, отклоняется.

        Returns:
            Подсказка с адресом и координатами устройства или None
        """
        if self._resolving:
            await log_warning(
                "Определение местоположения уже выполняется, повторный запрос отклонён",
                extra=self._log_extra(),
            )
            return None
        if self._geolocation is None:
            await log_warning("Источник геолокации не настроен", extra=self._log_extra())
            return None

        self._resolving = True
        self._generation += 1
        try:
            coordinates = await self._geolocation.get_current_position()

            if not await self._geocoder.contains(coordinates):
                raise NotInServiceArea(f"Координаты {coordinates.to_query()} вне страны обслуживания")

            features = await self._geocoder.reverse(coordinates)
            candidate = next(
                (c for c in (Candidate.from_feature(f, coordinates) for f in features) if c),
                None,
            )
            if candidate is None:
                raise NoAddressFound(f"Адрес для {coordinates.to_query()} не найден")
        except (OrderHubError, *_LOOKUP_ERRORS) as e:
            self.last_error = e if isinstance(e, OrderHubError) else FetchFailed(str(e))
            await log_error(
                f"Ошибка определения текущего местоположения: {e}",
                extra=self._log_extra(error=type(self.last_error).__name__),
            )
            self._publish([], False)
            return None
        finally:
            self._resolving = False

        if self._closed:
            return None

        self.last_error = None
        self._publish([], True)
        return candidate

    # =========================================================================
    # ЗАВЕРШЕНИЕ
    # =========================================================================

    def close(self) -> None:
        """Отменяет отложенный поиск и отключает колбэки."""
        self._debouncer.cancel()
        self._closed = True
        self._suggestions = []

    async def wait_idle(self) -> None:
        """Дожидается уже запущенных поисков."""
        await self._debouncer.wait()
