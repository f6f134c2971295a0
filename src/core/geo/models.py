# src/core/geo/models.py
"""
Модели геоданных: координаты, адрес, подсказка адреса.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    """Пара долгота/широта (порядок как у Mapbox)."""

    model_config = ConfigDict(frozen=True)

    longitude: float = Field(..., ge=-180.0, le=180.0, description="Долгота")
    latitude: float = Field(..., ge=-90.0, le=90.0, description="Широта")

    def to_query(self) -> str:
        """Строка "lon,lat" для обратного геокодирования."""
        return f"{self.longitude},{self.latitude}"

    @classmethod
    def from_center(cls, center: Any) -> Optional[Coordinates]:
        """
        Строит координаты из поля center фичи Mapbox.

        Returns:
            Координаты или None, если center не пара чисел в допустимых пределах
        """
        if not isinstance(center, Sequence) or isinstance(center, str) or len(center) != 2:
            return None
        try:
            return cls(longitude=center[0], latitude=center[1])
        except ValueError:
            return None


class Location(BaseModel):
    """
    Адрес с необязательными координатами.
    Адрес без координат допустим, но не считается разрешённым.
    """

    model_config = ConfigDict(frozen=True)

    formatted_address: str = Field("", description="Отформатированный адрес")
    coordinates: Optional[Coordinates] = Field(None, description="Координаты")

    @property
    def is_resolved(self) -> bool:
        return self.coordinates is not None

    @property
    def is_blank(self) -> bool:
        return not self.formatted_address.strip()


@dataclass(frozen=True)
class Candidate:
    """Подсказка адреса."""
    label: str
    sublabel: str
    formatted_address: str
    coordinates: Optional[Coordinates] = None

    def to_location(self) -> Location:
        return Location(formatted_address=self.formatted_address, coordinates=self.coordinates)

    @classmethod
    def from_feature(
        cls,
        feature: dict[str, Any],
        coordinates: Optional[Coordinates] = None,
    ) -> Optional[Candidate]:
        """
        Строит подсказку из фичи Mapbox.

        Args:
            feature: {id, text, place_name, center: [lon, lat]}
            coordinates: Координаты, которые заменяют center (позиция устройства)

        Returns:
            Подсказка или None, если у фичи нет адреса или координат
        """
        place_name = feature.get("place_name")
        if not isinstance(place_name, str) or not place_name.strip():
            return None

        coords = coordinates or Coordinates.from_center(feature.get("center"))
        if coords is None:
            return None

        return cls(
            label=feature.get("text") or place_name,
            sublabel=place_name,
            formatted_address=place_name,
            coordinates=coords,
        )


def iter_candidates(features: Sequence[dict[str, Any]]) -> Iterator[Candidate]:
    """Лениво отбирает фичи с адресом и парой координат."""
    for feature in features:
        candidate = Candidate.from_feature(feature)
        if candidate is not None:
            yield candidate
