# src/services/realtime_ws/connection_manager.py
"""
Менеджер WebSocket соединений (realtime-рассылка).
Управляет подписками и доставкой сообщений наблюдателям.
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

from src.common.constants import ADMIN_TOPIC, customer_topic, driver_topic, trip_topic
from src.common.logger import get_logger
from src.shared.events.base import RealtimeEvent
from src.shared.models.enums import ObserverRole

logger = get_logger("realtime_ws")

Message = dict[str, Any]


@dataclass
class ConnectionInfo:
    """Информация о соединении."""
    connection_id: str
    websocket: WebSocket
    role: ObserverRole
    queue: asyncio.Queue
    user_id: str | None = None
    driver_id: str | None = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    subscriptions: set[str] = field(default_factory=set)  # admin, trip:{id}, driver:{id}
    sender: asyncio.Task | None = None
    closed: bool = False
    dropped: int = 0


class ConnectionManager:
    """
    Менеджер WebSocket соединений.

    Поддерживает:
    - Подключение/отключение наблюдателей
    - Подписка на топики (admin, trip:{id}, driver:{id}, customer:{id})
    - Рассылка по топикам и персональные сообщения

    Отправка отвязана от пути записи: у каждого соединения своя ограниченная
    очередь и своя задача-отправитель. Методы рассылки синхронны и никогда
    не ждут сеть. При переполнении очереди отбрасывается самое старое
    сообщение. Сообщения одного источника попадают в очередь в порядке вызова.
    """

    def __init__(self, queue_size: int = 256) -> None:
        self._queue_size = queue_size

        # connection_id -> ConnectionInfo
        self._connections: dict[str, ConnectionInfo] = {}

        # topic -> set of connection_ids
        self._subscriptions: dict[str, set[str]] = {}

        # Для статистики
        self._total_connections: int = 0
        self._total_messages_sent: int = 0
        self._total_messages_dropped: int = 0
        self._total_send_failures: int = 0

    @property
    def active_connections(self) -> int:
        """Количество активных соединений."""
        return len(self._connections)

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ СОЕДИНЕНИЯ
    # =========================================================================

    async def connect(
        self,
        websocket: WebSocket,
        role: ObserverRole,
        user_id: str | None = None,
        driver_id: str | None = None,
    ) -> ConnectionInfo:
        """
        Принять соединение и запустить его отправителя.

        Администраторы подписываются на admin, водитель — на свой
        персональный топик, заказчик — на свой.
        """
        await websocket.accept()

        conn = ConnectionInfo(
            connection_id=uuid.uuid4().hex,
            websocket=websocket,
            role=role,
            queue=asyncio.Queue(maxsize=self._queue_size),
            user_id=user_id,
            driver_id=driver_id,
        )
        self._connections[conn.connection_id] = conn
        self._total_connections += 1

        if role == ObserverRole.ADMIN:
            self.subscribe(conn.connection_id, ADMIN_TOPIC)
        if driver_id:
            self.subscribe(conn.connection_id, driver_topic(driver_id))
        if user_id and role == ObserverRole.CUSTOMER:
            self.subscribe(conn.connection_id, customer_topic(user_id))

        conn.sender = asyncio.create_task(
            self._sender(conn), name=f"ws-sender-{conn.connection_id}"
        )
        logger.info(
            "Подключение %s: role=%s user=%s driver=%s",
            conn.connection_id, role, user_id, driver_id,
        )
        return conn

    async def disconnect(self, connection_id: str) -> None:
        """
        Отключить наблюдателя.

        Повторный вызов и вызов для неизвестного id безопасны.
        Недоставленные сообщения отбрасываются.
        """
        conn = self._forget(connection_id)
        if conn is None:
            return

        sender = conn.sender
        if sender is not None and sender is not asyncio.current_task() and not sender.done():
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sender
        logger.info("Отключение %s (role=%s)", connection_id, conn.role)

    def _forget(self, connection_id: str) -> ConnectionInfo | None:
        """Снять соединение с учёта без ожидания сети."""
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return None

        conn.closed = True
        for topic in list(conn.subscriptions):
            self._unsubscribe_from_topic(connection_id, topic)

        # Освобождаем ожидающих flush()
        while True:
            try:
                conn.queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            conn.queue.task_done()
        return conn

    async def close(self) -> None:
        """Остановить все отправители (завершение процесса)."""
        for connection_id in list(self._connections):
            await self.disconnect(connection_id)

    # =========================================================================
    # ПОДПИСКИ
    # =========================================================================

    def subscribe(self, connection_id: str, topic: str) -> bool:
        """
        Подписать соединение на топик.

        Returns:
            False если соединение неизвестно (уже закрыто)
        """
        conn = self._connections.get(connection_id)
        if conn is None:
            return False

        conn.subscriptions.add(topic)
        self._subscriptions.setdefault(topic, set()).add(connection_id)
        return True

    def unsubscribe(self, connection_id: str, topic: str) -> None:
        """Отписать соединение от топика."""
        self._unsubscribe_from_topic(connection_id, topic)

    def _unsubscribe_from_topic(self, connection_id: str, topic: str) -> None:
        conn = self._connections.get(connection_id)
        if conn is not None:
            conn.subscriptions.discard(topic)

        subscribers = self._subscriptions.get(topic)
        if subscribers is not None:
            subscribers.discard(connection_id)
            if not subscribers:
                del self._subscriptions[topic]

    # =========================================================================
    # РАССЫЛКА
    # =========================================================================

    def broadcast_driver_update(self, event: RealtimeEvent | Message) -> int:
        """Разослать обновление водителя всем admin-наблюдателям."""
        return self.send_to_topic(ADMIN_TOPIC, event)

    def broadcast_to_trip_subscribers(self, trip_id: str, event: RealtimeEvent | Message) -> int:
        """Разослать обновление только подписчикам поездки."""
        return self.send_to_topic(trip_topic(trip_id), event)

    def send_to_topic(self, topic: str, event: RealtimeEvent | Message) -> int:
        """
        Поставить сообщение в очереди всех подписчиков топика.

        Returns:
            Количество соединений, получивших сообщение в очередь
        """
        return self.send_to_topics([topic], event)

    def send_to_topics(self, topics: list[str], event: RealtimeEvent | Message) -> int:
        """Разослать одно сообщение подписчикам нескольких топиков (каждому один раз)."""
        recipients: list[str] = []
        seen: set[str] = set()
        for topic in topics:
            for connection_id in self._subscriptions.get(topic, ()):
                if connection_id not in seen:
                    seen.add(connection_id)
                    recipients.append(connection_id)
        if not recipients:
            return 0

        message = self._to_message(event)
        queued = 0
        for connection_id in recipients:
            conn = self._connections.get(connection_id)
            if conn is not None and self._enqueue(conn, message):
                queued += 1
        return queued

    def send_personal(self, connection_id: str, event: RealtimeEvent | Message) -> bool:
        """
        Отправить сообщение конкретному соединению.

        Returns:
            True если сообщение поставлено в очередь
        """
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        return self._enqueue(conn, self._to_message(event))

    @staticmethod
    def _to_message(event: RealtimeEvent | Message) -> Message:
        if isinstance(event, RealtimeEvent):
            return event.to_message()
        return event

    def _enqueue(self, conn: ConnectionInfo, message: Message) -> bool:
        if conn.closed:
            return False

        try:
            conn.queue.put_nowait(message)
        except asyncio.QueueFull:
            # Медленный наблюдатель: вытесняем самое старое сообщение
            conn.queue.get_nowait()
            conn.queue.task_done()
            conn.queue.put_nowait(message)
            conn.dropped += 1
            self._total_messages_dropped += 1
            logger.warning(
                "Очередь соединения %s переполнена, старое сообщение отброшено (всего %d)",
                conn.connection_id, conn.dropped,
            )
        return True

    async def _sender(self, conn: ConnectionInfo) -> None:
        """Доставляет сообщения из очереди соединения по одному."""
        while True:
            message = await conn.queue.get()
            try:
                await conn.websocket.send_json(message)
                self._total_messages_sent += 1
            except Exception as e:
                # Ошибка доставки одному наблюдателю не влияет на остальных
                self._total_send_failures += 1
                logger.warning("Ошибка отправки в соединение %s: %s", conn.connection_id, e)
                self._forget(conn.connection_id)
                return
            finally:
                conn.queue.task_done()

    async def flush(self) -> None:
        """Дождаться доставки всех поставленных в очередь сообщений."""
        await asyncio.gather(*(conn.queue.join() for conn in list(self._connections.values())))

    # =========================================================================
    # ИНФОРМАЦИЯ
    # =========================================================================

    def get_connection(self, connection_id: str) -> ConnectionInfo | None:
        return self._connections.get(connection_id)

    def get_subscriptions(self, connection_id: str) -> set[str]:
        """Получить все подписки соединения."""
        conn = self._connections.get(connection_id)
        if conn is not None:
            return conn.subscriptions.copy()
        return set()

    def get_topic_subscribers(self, topic: str) -> set[str]:
        """Получить всех подписчиков топика."""
        return self._subscriptions.get(topic, set()).copy()

    def get_stats(self) -> dict[str, Any]:
        """Получить статистику."""
        return {
            "active_connections": len(self._connections),
            "total_topics": len(self._subscriptions),
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._total_messages_sent,
            "total_messages_dropped": self._total_messages_dropped,
            "total_send_failures": self._total_send_failures,
            "connections_by_role": self._count_by_role(),
        }

    def _count_by_role(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for conn in self._connections.values():
            counts[conn.role.value] = counts.get(conn.role.value, 0) + 1
        return counts
