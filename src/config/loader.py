# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json (плоский словарь).
Секреты и адреса инфраструктуры переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

M = TypeVar("M", bound=BaseModel)


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json без ключей-комментариев (_comment_*)."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return {k: v for k, v in data.items() if not k.startswith("_comment_")}


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "order_hub"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_FORMAT: str = "colored"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_format(cls, v: str) -> str:
        """Допустимы только json и colored."""
        if v not in ("json", "colored"):
            raise ValueError(f"Неизвестный формат логов: {v}")
        return v


class DomainSettings(BaseModel):
    """Настройки домена и локализации."""
    DEFAULT_LANGUAGE: str = "fr"
    SUPPORTED_LANGUAGES: list[str] = Field(default_factory=lambda: ["fr", "en"])
    TIMEZONE: str = "Europe/Paris"
    CURRENCY: str = "EUR"
    CURRENCY_SYMBOL: str = "€"


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "order_hub"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 2
    DB_MAX_POOL_SIZE: int = 10
    DB_COMMAND_TIMEOUT: int = 60

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis (хранилище сессий)."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "order_hub"
    REDIS_MAX_CONNECTIONS: int = 20

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ (доменные события)."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "order_hub.events"

    @property
    def url(self) -> str:
        """URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class GeocodingSettings(BaseModel):
    """Настройки геокодера Mapbox."""
    MAPBOX_ACCESS_TOKEN: str = ""
    GEOCODING_URL: str = "https://api.mapbox.com/geocoding/v5/mapbox.places"
    GEOCODING_LANGUAGE: str = "fr"
    COUNTRY_CODE: str = "fr"
    SUGGESTION_LIMIT: int = 5
    REQUEST_TIMEOUT: float = 10.0

    @field_validator("MAPBOX_ACCESS_TOKEN", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает токен из переменных окружения."""
        if not v:
            return os.getenv("MAPBOX_ACCESS_TOKEN", "")
        return v


class BookingSettings(BaseModel):
    """Правила бронирования и ввода адресов."""
    BUSINESS_HOUR_START: int = 8
    BUSINESS_HOUR_END: int = 20
    SCHEDULE_BUFFER_MINUTES: int = 15
    MIN_QUERY_LENGTH: int = 3
    DEBOUNCE_DELAY: float = 0.3
    COUNTRY_NAME: str = "france"
    POSTAL_CODE_PATTERN: str = r"\b\d{5}\b"

    @model_validator(mode="after")
    def check_hours(self) -> "BookingSettings":
        """Рабочие часы должны образовывать непустой интервал."""
        if not 0 <= self.BUSINESS_HOUR_START < self.BUSINESS_HOUR_END <= 24:
            raise ValueError("BUSINESS_HOUR_START должен быть меньше BUSINESS_HOUR_END")
        return self


class CatalogSettings(BaseModel):
    """Минимальные цены услуг каталога."""
    CARPOOLING_MIN_PRICE: Decimal = Decimal("8.00")
    SHOPPING_MIN_PRICE: Decimal = Decimal("5.00")
    LARGE_ITEMS_MIN_PRICE: Decimal = Decimal("15.00")


class FeedSettings(BaseModel):
    """Настройки ленты изменений PostgreSQL."""
    CHANGE_FEED_CHANNEL: str = "orders_changes"
    FEED_QUEUE_SIZE: int = 100


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

# Ключи, которые можно переопределить переменными окружения
_ENV_OVERRIDES = (
    "ENVIRONMENT",
    "LOG_LEVEL",
    "DB_HOST",
    "DB_PORT",
    "DB_NAME",
    "DB_USER",
    "DB_PASSWORD",
    "REDIS_HOST",
    "REDIS_PORT",
    "REDIS_PASSWORD",
    "RABBITMQ_HOST",
    "RABBITMQ_PORT",
    "RABBITMQ_USER",
    "RABBITMQ_PASSWORD",
    "MAPBOX_ACCESS_TOKEN",
)


def _section(model: type[M], data: dict[str, Any]) -> M:
    """Собирает секцию настроек из плоского словаря по именам полей."""
    values = {name: data[name] for name in model.model_fields if name in data}
    return model(**values)


class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    domain: DomainSettings = Field(default_factory=DomainSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    geocoding: GeocodingSettings = Field(default_factory=GeocodingSettings)
    booking: BookingSettings = Field(default_factory=BookingSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    feed: FeedSettings = Field(default_factory=FeedSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """
        Создаёт Settings из плоского словаря.
        Значения из окружения имеют приоритет над словарём.
        """
        merged = dict(data)
        for key in _ENV_OVERRIDES:
            env_value = os.getenv(key)
            if env_value:
                merged[key] = env_value

        return cls(
            system=_section(SystemSettings, merged),
            logging=_section(LoggingSettings, merged),
            domain=_section(DomainSettings, merged),
            database=_section(DatabaseSettings, merged),
            redis=_section(RedisSettings, merged),
            rabbitmq=_section(RabbitMQSettings, merged),
            geocoding=_section(GeocodingSettings, merged),
            booking=_section(BookingSettings, merged),
            catalog=_section(CatalogSettings, merged),
            feed=_section(FeedSettings, merged),
        )

    @classmethod
    def from_config_json(cls) -> "Settings":
        """Создаёт Settings из config.json."""
        return cls.from_dict(load_config_json())


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Перед чтением конфига подгружает .env из корня проекта.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
