# src/shared/__init__.py
"""
Общий код между сервисами.

Модули:
- events: схемы realtime-событий
- models: общие DTO и Pydantic-модели
"""

__all__: list[str] = []
