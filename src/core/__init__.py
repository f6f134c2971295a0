# src/core/__init__.py
"""
Доменный слой (Core Domain).
Адреса, цены, заказы, каталог услуг и пользовательская сессия.
"""
