# src/core/catalog/service.py
"""
Каталог услуг.

Статический каталог (типы услуг и минимальные цены из конфига) и
разрешение идентификатора услуги в UUID таблицы services.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from src.common.constants import ServiceType, TypeMsg
from src.common.exceptions import ServiceNotFound
from src.common.logger import log_info, log_warning
from src.core.catalog.models import ResolvedService, Service, ServiceMatch, UnresolvedService
from src.core.orders.models import Order
from src.core.orders.repository import ServiceRepository

SERVICE_NAMES: dict[ServiceType, str] = {
    ServiceType.CARPOOLING: "Covoiturage",
    ServiceType.SHOPPING: "Courses",
    ServiceType.LARGE_ITEMS: "Objets encombrants",
}


def is_persisted_id(value: str | None) -> bool:
    """Похоже ли значение на UUID строки services."""
    if not value:
        return False
    try:
        UUID(value)
    except ValueError:
        return False
    return True


def default_services() -> tuple[Service, ...]:
    """Статический каталог с минимальными ценами из конфига."""
    from src.config import settings

    min_prices = {
        ServiceType.CARPOOLING: settings.catalog.CARPOOLING_MIN_PRICE,
        ServiceType.SHOPPING: settings.catalog.SHOPPING_MIN_PRICE,
        ServiceType.LARGE_ITEMS: settings.catalog.LARGE_ITEMS_MIN_PRICE,
    }
    return tuple(
        Service(id=service_type.value, type=service_type, name=name, min_price=min_prices[service_type])
        for service_type, name in SERVICE_NAMES.items()
    )


class ServiceCatalog:
    """Каталог услуг."""

    def __init__(
        self,
        repository: ServiceRepository,
        services: Optional[tuple[Service, ...]] = None,
    ) -> None:
        """
        Args:
            repository: Репозиторий таблицы services
            services: Записи каталога (по умолчанию статический каталог)
        """
        self._repo = repository
        self._services = services if services is not None else default_services()

    @property
    def services(self) -> tuple[Service, ...]:
        return self._services

    def get(self, key: str) -> Optional[Service]:
        """Услуга по id или названию (без учёта регистра)."""
        needle = key.strip().lower()
        for service in self._services:
            if service.id.lower() == needle or service.name.lower() == needle:
                return service
        return None

    def match_order(self, order: Order) -> ServiceMatch:
        """
        Сопоставляет заказ с записью каталога.
        Без совпадения возвращается UnresolvedService, не первая услуга каталога.
        """
        for key in (order.service_id, order.service_name):
            if key:
                service = self.get(key)
                if service is not None:
                    return ResolvedService(service)
        return UnresolvedService(service_id=order.service_id, service_name=order.service_name)

    async def resolve_service_id(self, service: Service) -> str:
        """
        UUID услуги в таблице services.

        Сохранённый id возвращается как есть, иначе услуга ищется
        по названию; требуется ровно одно совпадение.

        Raises:
            ServiceNotFound: совпадений нет или больше одного
            FetchFailed: ошибка БД
        """
        if is_persisted_id(service.id):
            return service.id

        ids = await self._repo.find_ids_by_name(service.name)
        if len(ids) != 1:
            await log_warning(
                f"Услуга '{service.name}': найдено совпадений {len(ids)}",
                extra={"service_id": service.id},
            )
            raise ServiceNotFound(f"Услуга '{service.name}' не найдена однозначно ({len(ids)})")

        await log_info(
            f"Услуга '{service.name}' разрешена в {ids[0]}",
            type_msg=TypeMsg.DEBUG,
        )
        return ids[0]
