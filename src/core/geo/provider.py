# src/core/geo/provider.py
"""
Геокодер Mapbox и проверки принадлежности к стране обслуживания.
"""

from __future__ import annotations

import re
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx

from src.common.constants import TypeMsg
from src.common.exceptions import FetchFailed
from src.common.logger import log_info
from src.core.geo.models import Coordinates


class GeolocationSource(Protocol):
    """Источник текущих координат устройства (однократный запрос)."""

    async def get_current_position(self) -> Coordinates:
        """
        Raises:
            GeolocationUnavailable: координаты получить не удалось
        """
        ...


class StaticGeolocation:
    """Координаты, уже полученные от клиента (например, из запроса браузера)."""

    def __init__(self, coordinates: Coordinates) -> None:
        self._coordinates = coordinates

    async def get_current_position(self) -> Coordinates:
        return self._coordinates


class MapboxGeocoder:
    """
    Прямое и обратное геокодирование через Mapbox Places API.

    Ответ провайдера: {"features": [{id, text, place_name, center: [lon, lat]}]}.
    Прямой поиск ограничен одной страной (COUNTRY_CODE).
    """

    def __init__(
        self,
        access_token: str | None = None,
        *,
        base_url: str | None = None,
        country: str | None = None,
        language: str | None = None,
        limit: int | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            access_token: Токен Mapbox (берётся из конфига если None)
            base_url: Базовый URL geocoding API
            country: Код страны обслуживания (ISO 3166-1 alpha-2)
            language: Язык ответов
            limit: Максимум подсказок
            timeout: Таймаут HTTP-запроса
            client: Готовый httpx-клиент (для тестов)
        """
        from src.config import settings

        cfg = settings.geocoding
        self._token = access_token if access_token is not None else cfg.MAPBOX_ACCESS_TOKEN
        self._base_url = (base_url or cfg.GEOCODING_URL).rstrip("/")
        self._country = (country or cfg.COUNTRY_CODE).lower()
        self._language = language or cfg.GEOCODING_LANGUAGE
        self._limit = limit or cfg.SUGGESTION_LIMIT
        self._client = client or httpx.AsyncClient(timeout=timeout or cfg.REQUEST_TIMEOUT)

    @property
    def country(self) -> str:
        return self._country

    async def close(self) -> None:
        """Закрывает HTTP клиент."""
        await self._client.aclose()

    async def _request(self, search_text: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """
        Выполняет запрос и возвращает список фич.

        Raises:
            FetchFailed: токен не настроен
            httpx.HTTPError: ошибка транспорта или HTTP-статус >= 400
            ValueError: ответ не JSON
        """
        if not self._token:
            raise FetchFailed("Mapbox access token не настроен")

        url = f"{self._base_url}/{quote(search_text, safe=',')}.json"
        response = await self._client.get(
            url,
            params={"access_token": self._token, "language": self._language, **params},
        )
        response.raise_for_status()

        data = response.json()
        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list):
            return []
        return [f for f in features if isinstance(f, dict)]

    async def forward(self, query: str) -> list[dict[str, Any]]:
        """Прямой поиск: текст -> фичи в пределах страны."""
        features = await self._request(
            query,
            {"country": self._country, "limit": self._limit, "autocomplete": "true"},
        )
        await log_info(
            f"Геокодирование '{query}': {len(features)} результатов",
            type_msg=TypeMsg.DEBUG,
        )
        return features

    async def reverse(self, coordinates: Coordinates) -> list[dict[str, Any]]:
        """Обратный поиск: "lon,lat" -> фичи."""
        return await self._request(coordinates.to_query(), {"country": self._country, "limit": 1})

    async def contains(self, coordinates: Coordinates) -> bool:
        """Находятся ли координаты в стране обслуживания."""
        features = await self._request(coordinates.to_query(), {"types": "country"})
        for feature in features:
            short_code = (feature.get("properties") or {}).get("short_code", "")
            if isinstance(short_code, str) and short_code.lower() == self._country:
                return True
        return False


def looks_like_country_address(
    address: str,
    country_name: Optional[str] = None,
    postal_code_pattern: Optional[str] = None,
) -> bool:
    """
    Текстовая проверка адреса: упоминание страны или почтовый индекс
    в её формате (для Франции пять цифр).
    """
    if not address or not address.strip():
        return False

    if country_name is None or postal_code_pattern is None:
        from src.config import settings
        country_name = country_name or settings.booking.COUNTRY_NAME
        postal_code_pattern = postal_code_pattern or settings.booking.POSTAL_CODE_PATTERN

    if country_name.lower() in address.lower():
        return True
    return re.search(postal_code_pattern, address) is not None
