# src/services/__init__.py
"""
HTTP-сервисы приложения.

Сервисы:
- ride_board: лента объявлений, профили, проверка удостоверений, сообщества, отзывы
"""

__all__: list[str] = []
