# src/core/orders/models.py
"""
Модели данных заказов.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.common.constants import OrderStatus, PaymentMethod
from src.core.catalog.models import Service
from src.core.geo.models import Location


class Order(BaseModel):
    """Модель заказа (строка таблицы orders)."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="UUID заказа")
    user_id: str = Field(..., description="ID владельца")
    service_id: str = Field(..., description="ID услуги")
    status: OrderStatus = Field(OrderStatus.PENDING, description="Статус заказа")

    pickup_location: str = Field(..., description="Адрес подачи")
    dropoff_location: str = Field(..., description="Адрес назначения")

    estimated_price: Decimal = Field(..., ge=0, description="Расчётная стоимость")
    payment_method: PaymentMethod = Field(PaymentMethod.CASH, description="Способ оплаты")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Время создания",
    )
    service_name: Optional[str] = Field(None, description="Название услуги (JOIN services)")

    @property
    def is_terminal(self) -> bool:
        """Заказ в терминальном статусе."""
        return self.status.is_terminal

    @property
    def is_cancellable(self) -> bool:
        """Может ли пользователь отменить заказ."""
        return self.status in (OrderStatus.PENDING, OrderStatus.ACTIVE)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Order:
        """
        Строит заказ из строки БД.

        Args:
            record: asyncpg.Record или dict

        Returns:
            Заказ
        """
        data = dict(record)
        for key in ("id", "user_id", "service_id"):
            if data.get(key) is not None:
                data[key] = str(data[key])
        return cls.model_validate(data)


class OrderFormData(BaseModel):
    """Данные формы заказа (живут до отправки или сброса)."""

    pickup: Location = Field(default_factory=Location, description="Место подачи")
    destination: Location = Field(default_factory=Location, description="Место назначения")
    scheduled_date: Optional[date] = Field(None, description="Дата")
    scheduled_time: Optional[time] = Field(None, description="Время")
    price: Optional[float] = Field(None, description="Предложенная цена")
    min_price: Decimal = Field(Decimal("0"), description="Минимальная цена выбранной услуги")
    payment_method: PaymentMethod = Field(PaymentMethod.CASH, description="Способ оплаты")
    wallet_balance: Optional[Decimal] = Field(None, description="Снимок баланса кошелька")

    @classmethod
    def for_service(cls, service: Service, **data: Any) -> OrderFormData:
        """Форма с минимальной ценой выбранной услуги."""
        return cls(min_price=service.min_price, **data)


class OrderCreateDTO(BaseModel):
    """DTO для создания заказа."""

    user_id: str
    service: Service
    pickup_location: str
    dropoff_location: str
    estimated_price: Decimal = Field(..., ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
