# src/services/__init__.py
"""
Сервисы ядра трекинга и диспетчеризации.

Сервисы:
- driver_state: авторитетное хранилище состояния водителей (memory | redis)
- realtime_location: приём геолокации и дневной одометр
- realtime_ws: WebSocket-канал и неблокирующая рассылка
- order_matching: назначение свободного водителя на заказ
- trip_service: жизненный цикл поездки (memory | postgres)
- drivers: реестр водителей
- pricing_service: тариф и оценка времени в пути
- utils: геодезия (haversine)
"""

__all__: list[str] = []
