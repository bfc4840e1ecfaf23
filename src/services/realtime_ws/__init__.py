# src/services/realtime_ws/__init__.py
"""
Realtime WebSocket канал.

Обеспечивает:
- Подключение администраторов, заказчиков и водителей
- Подписку на обновления поездок
- Неблокирующую рассылку через очередь на каждое соединение
"""
