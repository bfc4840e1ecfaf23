# src/services/realtime_location/__init__.py
"""
Приём геолокации водителей.

Обеспечивает:
- Валидацию сэмплов
- Дневной одометр с автоматическим сбросом при смене даты
- Рассылку обновлений через ConnectionManager
"""
