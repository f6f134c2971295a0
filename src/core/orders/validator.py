# src/core/orders/validator.py
"""
Проверка формы заказа.

Все правила проверяются независимо, ошибки собираются в словарь
поле -> локализованное сообщение. Пустой словарь означает, что форму
можно отправлять.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, tzinfo
from decimal import Decimal
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from src.common.constants import PaymentMethod
from src.common.localization import get_text
from src.core.orders.models import OrderFormData
from src.core.pricing.service import format_price

OrderFormErrors = dict[str, str]

# Ключи ошибок формы
PICKUP = "pickup_location"
DESTINATION = "destination"
SAME_ADDRESS = "same_address"
SCHEDULED_DATE = "scheduled_date"
SCHEDULED_TIME = "scheduled_time"
PRICE = "price"
DISTANCE = "distance"
INSUFFICIENT_FUNDS = "insufficient_funds"


class OrderValidator:
    """Валидатор формы заказа."""

    def __init__(
        self,
        *,
        business_hour_start: int | None = None,
        business_hour_end: int | None = None,
        buffer_minutes: int | None = None,
        tz: tzinfo | None = None,
        lang: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Args:
            business_hour_start: Начало рабочего времени (час, включительно)
            business_hour_end: Конец рабочего времени (час, не включительно)
            buffer_minutes: Минимальный запас до времени заказа
            tz: Часовой пояс календарного дня
            lang: Язык сообщений
            clock: Источник текущего времени
        """
        from src.config import settings

        booking = settings.booking
        self.business_hour_start = (
            booking.BUSINESS_HOUR_START if business_hour_start is None else business_hour_start
        )
        self.business_hour_end = (
            booking.BUSINESS_HOUR_END if business_hour_end is None else business_hour_end
        )
        self.buffer = timedelta(
            minutes=booking.SCHEDULE_BUFFER_MINUTES if buffer_minutes is None else buffer_minutes
        )
        self.tz = tz or ZoneInfo(settings.domain.TIMEZONE)
        self.lang = lang
        self._clock = clock or (lambda: datetime.now(self.tz))

    def _now(self, now: Optional[datetime]) -> datetime:
        current = now if now is not None else self._clock()
        if current.tzinfo is None:
            return current.replace(tzinfo=self.tz)
        return current.astimezone(self.tz)

    def _text(self, key: str, **kwargs: object) -> str:
        return get_text(key, self.lang, **kwargs)

    def validate(
        self,
        form: OrderFormData,
        has_distance: bool,
        now: Optional[datetime] = None,
    ) -> OrderFormErrors:
        """
        Проверяет форму.

        Args:
            form: Данные формы
            has_distance: Рассчитано ли расстояние между адресами
            now: Текущий момент (для тестов)

        Returns:
            Ошибки по полям; пустой словарь, если форма валидна
        """
        current = self._now(now)
        errors: OrderFormErrors = {}

        # Адреса
        pickup = form.pickup.formatted_address.strip()
        destination = form.destination.formatted_address.strip()

        if not pickup:
            errors[PICKUP] = self._text("FORM_PICKUP_REQUIRED")
        if not destination:
            errors[DESTINATION] = self._text("FORM_DESTINATION_REQUIRED")
        if pickup and destination and pickup == destination:
            errors[SAME_ADDRESS] = self._text("FORM_SAME_ADDRESS")

        # Дата
        date_ok = False
        if form.scheduled_date is None:
            errors[SCHEDULED_DATE] = self._text("FORM_DATE_REQUIRED")
        elif form.scheduled_date < current.date():
            errors[SCHEDULED_DATE] = self._text("FORM_PAST_DATE")
        else:
            date_ok = True

        # Время: рабочие часы проверяются первыми
        scheduled_time = form.scheduled_time
        if scheduled_time is None:
            errors[SCHEDULED_TIME] = self._text("FORM_TIME_REQUIRED")
        elif not self.business_hour_start <= scheduled_time.hour < self.business_hour_end:
            errors[SCHEDULED_TIME] = self._text(
                "FORM_BUSINESS_HOURS",
                start=self.business_hour_start,
                end=self.business_hour_end,
            )
        elif date_ok and self._too_soon(form.scheduled_date, scheduled_time, current):
            errors[SCHEDULED_TIME] = self._text(
                "FORM_PAST_DATETIME",
                minutes=int(self.buffer.total_seconds() // 60),
            )

        # Цена
        price = self._valid_price(form.price)
        if price is None:
            errors[PRICE] = self._text("FORM_INVALID_PRICE")
        elif price < form.min_price:
            errors[PRICE] = self._text("FORM_MIN_PRICE", min_price=format_price(form.min_price))

        # Расстояние
        if not has_distance and pickup and destination and pickup != destination:
            errors[DISTANCE] = self._text("FORM_DISTANCE_REQUIRED")

        # Кошелёк
        if (
            form.payment_method == PaymentMethod.WALLET
            and form.wallet_balance is not None
            and price is not None
            and form.wallet_balance < price
        ):
            errors[INSUFFICIENT_FUNDS] = self._text("FORM_INSUFFICIENT_FUNDS")

        return errors

    def _too_soon(self, day: date, scheduled: time, current: datetime) -> bool:
        scheduled_at = datetime.combine(day, scheduled).replace(tzinfo=self.tz)
        return scheduled_at < current + self.buffer

    @staticmethod
    def _valid_price(value: Optional[float]) -> Optional[Decimal]:
        """Положительная конечная цена или None."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, float) and not math.isfinite(value):
            return None
        price = value if isinstance(value, Decimal) else Decimal(str(value))
        if not price.is_finite() or price <= 0:
            return None
        return price


def validate_order_form(
    form: OrderFormData,
    has_distance: bool,
    now: Optional[datetime] = None,
) -> OrderFormErrors:
    """Проверка формы с настройками по умолчанию."""
    return OrderValidator().validate(form, has_distance, now)
