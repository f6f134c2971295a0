# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("MAPBOX_ACCESS_TOKEN", "test_mapbox_token")

from src.common.constants import OrderStatus, PaymentMethod, ServiceType  # noqa: E402
from src.core.catalog.models import Service  # noqa: E402
from src.core.orders.models import Order  # noqa: E402


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture(scope="session")
def lang_dict_path(project_root: Path) -> Path:
    """Путь к файлу локализации."""
    return project_root / "config" / "lang_dict.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "тестовая конфигурация",
        "PROJECT_NAME": "order_hub_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "LOG_FORMAT": "json",
        "LOG_TO_FILE": False,
        "DEFAULT_LANGUAGE": "en",
        "TIMEZONE": "Europe/Paris",
        "DB_HOST": "db.test",
        "DB_PORT": 5433,
        "DB_NAME": "order_hub_test",
        "DB_USER": "tester",
        "REDIS_HOST": "redis.test",
        "REDIS_DB": 1,
        "REDIS_NAMESPACE": "order_hub_test",
        "RABBITMQ_EXCHANGE": "order_hub.test",
        "COUNTRY_CODE": "fr",
        "SUGGESTION_LIMIT": 3,
        "BUSINESS_HOUR_START": 9,
        "BUSINESS_HOUR_END": 19,
        "SCHEDULE_BUFFER_MINUTES": 30,
        "CARPOOLING_MIN_PRICE": "9.50",
        "CHANGE_FEED_CHANNEL": "orders_changes_test",
        "FEED_QUEUE_SIZE": 10,
    }


@pytest.fixture
def mock_lang_dict() -> dict[str, dict[str, str]]:
    """Мок словаря локализации для тестов."""
    return {
        "FORM_PICKUP_REQUIRED": {
            "fr": "L'adresse de départ est requise",
            "en": "Pickup address is required",
        },
        "FORM_MIN_PRICE": {
            "fr": "Le prix minimum est de {min_price}",
            "en": "Minimum price is {min_price}",
        },
        "ONLY_FRENCH": {
            "fr": "Seulement en français",
        },
    }


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="UPDATE 1")
    db.fetchval = AsyncMock(return_value=None)
    db.acquire_dedicated = AsyncMock()
    db.release = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.get_json = AsyncMock(return_value=None)
    redis.set_json = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=None)
    event_bus.is_connected = True
    return event_bus


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

@pytest.fixture
def user_id() -> str:
    """ID пользователя сессии."""
    return "user-123"


@pytest.fixture
def carpooling_service() -> Service:
    """Услуга каталога без сохранённого UUID."""
    return Service(
        id=ServiceType.CARPOOLING.value,
        type=ServiceType.CARPOOLING,
        name="Covoiturage",
        min_price=Decimal("8.00"),
    )


@pytest.fixture
def persisted_service() -> Service:
    """Услуга с UUID из таблицы services."""
    return Service(
        id=str(uuid.uuid4()),
        type=ServiceType.SHOPPING,
        name="Courses",
        min_price=Decimal("5.00"),
    )


@pytest.fixture
def sample_order_row(user_id: str) -> dict[str, Any]:
    """Строка заказа из БД."""
    return {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "service_id": str(uuid.uuid4()),
        "status": OrderStatus.PENDING.value,
        "pickup_location": "10 Rue de Rivoli, 75001 Paris, France",
        "dropoff_location": "Gare de Lyon, 75012 Paris, France",
        "estimated_price": Decimal("12.50"),
        "payment_method": PaymentMethod.CASH.value,
        "created_at": datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc),
        "service_name": "Covoiturage",
    }


@pytest.fixture
def sample_order(sample_order_row: dict[str, Any]) -> Order:
    """Заказ в статусе pending."""
    return Order.from_record(sample_order_row)


def make_order(user_id: str, status: OrderStatus = OrderStatus.PENDING, **overrides: Any) -> Order:
    """Строит заказ для тестов."""
    data: dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "service_id": str(uuid.uuid4()),
        "status": status,
        "pickup_location": "1 Place de la Bastille, 75004 Paris",
        "dropoff_location": "Tour Eiffel, 75007 Paris",
        "estimated_price": Decimal("10.00"),
        "payment_method": PaymentMethod.CASH,
        "created_at": datetime.now(timezone.utc),
    }
    data.update(overrides)
    return Order(**data)


@pytest.fixture
def order_factory():
    """Фабрика заказов."""
    return make_order


# =============================================================================
# УТИЛИТЫ
# =============================================================================

@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


@pytest.fixture
def temp_lang_dict_file(tmp_path: Path, mock_lang_dict: dict[str, dict[str, str]]) -> Path:
    """Создаёт временный файл локализации."""
    lang_file = tmp_path / "lang_dict.json"
    lang_file.write_text(json.dumps(mock_lang_dict, ensure_ascii=False, indent=2))
    return lang_file


def feature(place_name: str, center: Any = (2.3522, 48.8566), text: str | None = None) -> dict[str, Any]:
    """Фича ответа Mapbox."""
    return {
        "id": f"address.{abs(hash(place_name))}",
        "text": text or place_name.split(",")[0],
        "place_name": place_name,
        "center": list(center) if center is not None else None,
    }


@pytest.fixture
def mapbox_feature():
    """Фабрика фич Mapbox."""
    return feature

