# tests/core/test_service_catalog.py
"""
Тесты для каталога услуг.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.common.constants import ServiceType
from src.common.exceptions import FetchFailed, ServiceNotFound
from src.core.catalog.models import ResolvedService, Service, UnresolvedService
from src.core.catalog.service import ServiceCatalog, default_services, is_persisted_id


@pytest.fixture
def service_repo() -> MagicMock:
    """Мок ServiceRepository."""
    repo = MagicMock()
    repo.find_ids_by_name = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def catalog(service_repo: MagicMock) -> ServiceCatalog:
    return ServiceCatalog(service_repo)


class TestDefaultServices:
    """Тесты статического каталога."""

    def test_contains_all_types(self) -> None:
        types = {service.type for service in default_services()}
        assert types == set(ServiceType)

    def test_min_prices_from_config(self) -> None:
        prices = {service.type: service.min_price for service in default_services()}
        assert prices[ServiceType.CARPOOLING] == Decimal("8.00")
        assert prices[ServiceType.LARGE_ITEMS] == Decimal("15.00")


class TestIsPersistedId:
    """Тесты для is_persisted_id."""

    def test_uuid(self) -> None:
        assert is_persisted_id(str(uuid.uuid4()))

    @pytest.mark.parametrize("value", [None, "", "carpooling", "12345"])
    def test_not_uuid(self, value) -> None:
        assert not is_persisted_id(value)


class TestResolveServiceId:
    """Тесты для ServiceCatalog.resolve_service_id."""

    @pytest.mark.asyncio
    async def test_persisted_id_used_as_is(
        self,
        catalog: ServiceCatalog,
        service_repo: MagicMock,
        persisted_service: Service,
    ) -> None:
        assert await catalog.resolve_service_id(persisted_service) == persisted_service.id
        service_repo.find_ids_by_name.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_by_name(
        self,
        catalog: ServiceCatalog,
        service_repo: MagicMock,
        carpooling_service: Service,
    ) -> None:
        service_id = str(uuid.uuid4())
        service_repo.find_ids_by_name.return_value = [service_id]

        assert await catalog.resolve_service_id(carpooling_service) == service_id
        service_repo.find_ids_by_name.assert_awaited_once_with("Covoiturage")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("matches", [0, 2])
    async def test_zero_or_ambiguous_matches(
        self,
        catalog: ServiceCatalog,
        service_repo: MagicMock,
        carpooling_service: Service,
        matches: int,
    ) -> None:
        service_repo.find_ids_by_name.return_value = [str(uuid.uuid4()) for _ in range(matches)]

        with pytest.raises(ServiceNotFound):
            await catalog.resolve_service_id(carpooling_service)

    @pytest.mark.asyncio
    async def test_lookup_failure_propagates(
        self,
        catalog: ServiceCatalog,
        service_repo: MagicMock,
        carpooling_service: Service,
    ) -> None:
        service_repo.find_ids_by_name.side_effect = FetchFailed("down")

        with pytest.raises(FetchFailed):
            await catalog.resolve_service_id(carpooling_service)


class TestMatchOrder:
    """Тесты для ServiceCatalog.match_order."""

    def test_match_by_service_name(self, catalog: ServiceCatalog, order_factory, user_id: str) -> None:
        order = order_factory(user_id, service_name="courses")

        match = catalog.match_order(order)

        assert isinstance(match, ResolvedService)
        assert match.service.type == ServiceType.SHOPPING

    def test_match_by_catalog_id(self, catalog: ServiceCatalog, order_factory, user_id: str) -> None:
        order = order_factory(user_id, service_id="large_items")

        match = catalog.match_order(order)

        assert isinstance(match, ResolvedService)
        assert match.service.type == ServiceType.LARGE_ITEMS

    def test_unknown_service_is_unresolved(
        self,
        catalog: ServiceCatalog,
        order_factory,
        user_id: str,
    ) -> None:
        """Нет совпадения: не подставляется первая услуга каталога."""
        order = order_factory(user_id, service_name="Déménagement")

        match = catalog.match_order(order)

        assert isinstance(match, UnresolvedService)
        assert match.service_id == order.service_id
        assert match.display_name == "Déménagement"

    def test_unresolved_without_name(self, catalog: ServiceCatalog, order_factory, user_id: str) -> None:
        order = order_factory(user_id)
        match = catalog.match_order(order)
        assert isinstance(match, UnresolvedService)
        assert match.display_name == order.service_id
