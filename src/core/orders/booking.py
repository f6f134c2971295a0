# src/core/orders/booking.py
"""
Оформление заказа из формы.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from src.common.exceptions import InsufficientFunds, NotInServiceArea, ValidationError
from src.common.localization import get_text
from src.common.logger import log_info, log_warning
from src.core.catalog.models import Service
from src.core.geo.provider import looks_like_country_address
from src.core.orders.models import Order, OrderCreateDTO, OrderFormData
from src.core.orders.store import OrderStore
from src.core.orders.validator import INSUFFICIENT_FUNDS, OrderValidator
from src.core.pricing.service import compute_price, verify_price


class BookingService:
    """Проверяет форму и передаёт заказ в OrderStore."""

    def __init__(
        self,
        store: OrderStore,
        validator: Optional[OrderValidator] = None,
    ) -> None:
        """
        Args:
            store: Хранилище заказов
            validator: Валидатор формы (по умолчанию с настройками из конфига)
        """
        self._store = store
        self._validator = validator or OrderValidator()

    def quote(self, distance_meters: Union[int, float, Decimal], service: Service) -> Decimal:
        """Цена для подстановки в форму."""
        return compute_price(distance_meters, service)

    async def submit(
        self,
        form: OrderFormData,
        service: Service,
        distance_meters: Optional[Union[int, float, Decimal]] = None,
        now: Optional[datetime] = None,
    ) -> Order:
        """
        Оформляет заказ.

        Args:
            form: Данные формы
            service: Выбранная услуга
            distance_meters: Расстояние маршрута (None если ещё не рассчитано)
            now: Текущий момент (для тестов)

        Returns:
            Созданный заказ

        Raises:
            NotInServiceArea: адрес вне страны обслуживания
            ValidationError: ошибки формы
            InsufficientFunds: не хватает средств в кошельке
            ServiceNotFound, FetchFailed, PersistFailed: ошибки создания
        """
        user_id = self._store.user_id
        if user_id is None:
            raise ValidationError({"user": get_text("AUTH_REQUIRED", self._validator.lang)})

        for location in (form.pickup, form.destination):
            address = location.formatted_address
            if address.strip() and not looks_like_country_address(address):
                await log_warning(
                    f"Адрес вне страны обслуживания: {address}",
                    extra={"user_id": user_id},
                )
                raise NotInServiceArea(address)

        form = form.model_copy(update={"min_price": service.min_price})
        errors = self._validator.validate(form, distance_meters is not None, now)
        if errors:
            if INSUFFICIENT_FUNDS in errors:
                raise InsufficientFunds(errors)
            raise ValidationError(errors)

        price = Decimal(str(form.price))
        if distance_meters is not None and not verify_price(price, distance_meters, service):
            await log_info(
                f"Предложенная цена {price} ниже расчётной для {distance_meters} м",
                extra={"user_id": user_id, "service_id": service.id},
            )

        dto = OrderCreateDTO(
            user_id=user_id,
            service=service,
            pickup_location=form.pickup.formatted_address.strip(),
            dropoff_location=form.destination.formatted_address.strip(),
            estimated_price=price,
            payment_method=form.payment_method,
        )
        return await self._store.create(dto)
