# src/core/catalog/models.py
"""
Модели каталога услуг.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.common.constants import ServiceType


class Service(BaseModel):
    """Неизменяемая запись каталога услуг."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str = Field(..., description="UUID услуги или её тип для статического каталога")
    type: ServiceType = Field(ServiceType.CARPOOLING, description="Тип услуги")
    name: str = Field(..., description="Название услуги")
    min_price: Decimal = Field(Decimal("0"), ge=0, description="Минимальная цена")


@dataclass(frozen=True)
class ResolvedService:
    """Заказ сопоставлен с услугой каталога."""
    service: Service


@dataclass(frozen=True)
class UnresolvedService:
    """Услуга заказа отсутствует в каталоге."""
    service_id: str
    service_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.service_name or self.service_id


ServiceMatch = Union[ResolvedService, UnresolvedService]
