# src/shared/__init__.py
"""
Общий код HTTP-слоя.

Модули:
- models: модели ответов API (ошибки, health check)
"""

__all__: list[str] = []
