# src/common/localization.py
"""
Модуль локализации.
Тексты сообщений (ошибки формы, статусы) берутся из config/lang_dict.json.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

DEFAULT_LANGUAGE = "fr"


def get_lang_dict_path() -> Path:
    """Возвращает путь к файлу локализации."""
    return Path(__file__).parent.parent.parent / "config" / "lang_dict.json"


@lru_cache()
def load_lang_dict() -> dict[str, dict[str, str]]:
    """
    Загружает словарь локализации (с кэшированием).

    Returns:
        Словарь вида {ключ: {язык: текст}}
    """
    lang_path = get_lang_dict_path()
    if not lang_path.exists():
        raise FileNotFoundError(f"Файл локализации не найден: {lang_path}")

    with open(lang_path, "r", encoding="utf-8") as f:
        return json.load(f)


def _default_language() -> str:
    try:
        from src.config import settings

        lang = settings.domain.DEFAULT_LANGUAGE
        return lang if isinstance(lang, str) else DEFAULT_LANGUAGE
    except Exception:
        return DEFAULT_LANGUAGE


def get_text(
    key: str,
    lang: str | None = None,
    default: str | None = None,
    **kwargs: Any,
) -> str:
    """
    Возвращает локализованный текст по ключу.

    Args:
        key: Ключ перевода
        lang: Код языка (fr, en) (None: язык по умолчанию из конфига)
        default: Значение, если ключ не найден
        **kwargs: Параметры форматирования

    Returns:
        Локализованный текст или "[key]"

    Example:
        >>> get_text("FORM_MIN_PRICE", "fr", min_price="5,00 €")
        "Le prix minimum est de 5,00 €"
    """
    try:
        translations = load_lang_dict().get(key)
    except FileNotFoundError:
        translations = None

    if not translations:
        return default if default else f"[{key}]"

    text = translations.get(lang or _default_language()) or translations.get(DEFAULT_LANGUAGE)
    if not text:
        text = next(iter(translations.values()), f"[{key}]")

    if kwargs:
        try:
            text = text.format(**kwargs)
        except KeyError:
            pass  # недостающие плейсхолдеры оставляем как есть

    return text


def get_available_languages() -> list[str]:
    """Список языков, для которых есть переводы."""
    try:
        first = next(iter(load_lang_dict().values()), {})
        return list(first.keys())
    except FileNotFoundError:
        return [DEFAULT_LANGUAGE]


def validate_lang_dict() -> list[str]:
    """
    Проверяет, что у каждого ключа есть переводы на все языки.

    Returns:
        Список ошибок (пустой, если всё в порядке)
    """
    try:
        lang_dict = load_lang_dict()
    except FileNotFoundError as e:
        return [str(e)]

    languages = set(get_available_languages())
    errors = []
    for key, translations in lang_dict.items():
        if not isinstance(translations, dict):
            errors.append(f"Ключ '{key}' имеет неверный формат")
            continue
        missing = languages - set(translations)
        if missing:
            errors.append(f"Ключ '{key}' не имеет перевода для языков: {sorted(missing)}")
    return errors
