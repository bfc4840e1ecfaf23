# src/services/realtime_ws/handlers.py
"""
Обработка входящих кадров WebSocket.

Кадр — JSON {"event": <имя>, "data": {...}}. Любая ошибка обработки
превращается в событие error только для отправившего соединения.
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable

from pydantic import Field, ValidationError

from src.common.constants import customer_topic, trip_topic
from src.common.exceptions import ForbiddenError, SwiftRideError
from src.common.logger import get_logger, log_debug, log_error
from src.services.driver_state.store import DriverStateStore
from src.services.drivers.service import DriverService
from src.services.order_matching.service import DispatchMatcher
from src.services.realtime_location.service import LocationIngestService
from src.services.realtime_ws.connection_manager import ConnectionInfo, ConnectionManager
from src.shared.events.base import RealtimeEvents
from src.shared.events.system_events import ErrorEvent, Pong, SubscriptionChanged
from src.shared.events.tracking_events import AdminSnapshot, DriverOffline
from src.shared.events.trip_events import TripAccepted
from src.shared.models.common import CamelModel
from src.shared.models.driver import LocationSample
from src.shared.models.enums import DriverStatus, ObserverRole
from src.shared.models.trip_dto import CreateTripRequest

logger = get_logger("realtime_ws")

EventHandler = Callable[[ConnectionInfo, dict[str, Any]], Awaitable[None]]


class SubscribeRequest(CamelModel):
    """Подписка на обновления поездки."""
    trip_id: str = Field(..., min_length=1)


class DriverStatusRequest(CamelModel):
    """Смена статуса водителем через сокет."""
    driver_id: str = ""
    status: DriverStatus


class RealtimeHandler:
    """
    Маршрутизация входящих событий realtime-канала.

    Входящие события:
    - driver:location {driverId, lat, lng} — только от соединения водителя
    - driver:status {driverId, status} — только от соединения водителя
    - request-trip {pickup, destination, ...}
    - subscribe / unsubscribe {tripId}
    - admin:snapshot — только для администратора
    - ping
    """

    def __init__(
        self,
        manager: ConnectionManager,
        ingest: LocationIngestService,
        matcher: DispatchMatcher,
        store: DriverStateStore,
        snapshot_on_connect: bool = True,
        drivers: DriverService | None = None,
    ) -> None:
        self.manager = manager
        self._ingest = ingest
        self._matcher = matcher
        self._store = store
        self._drivers = drivers or DriverService(store, manager)
        self._snapshot_on_connect = snapshot_on_connect

        self._handlers: dict[str, EventHandler] = {
            RealtimeEvents.DRIVER_LOCATION: self._on_driver_location,
            RealtimeEvents.DRIVER_STATUS: self._on_driver_status,
            RealtimeEvents.REQUEST_TRIP: self._on_request_trip,
            RealtimeEvents.SUBSCRIBE: self._on_subscribe,
            RealtimeEvents.UNSUBSCRIBE: self._on_unsubscribe,
            RealtimeEvents.ADMIN_SNAPSHOT: self._on_snapshot,
            RealtimeEvents.PING: self._on_ping,
        }

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ
    # =========================================================================

    async def on_connect(self, conn: ConnectionInfo, trip_id: str | None = None) -> None:
        """Автоподписка на поездку и начальный снимок для администратора."""
        if trip_id:
            self.manager.subscribe(conn.connection_id, trip_topic(trip_id))
        if conn.role == ObserverRole.ADMIN and self._snapshot_on_connect:
            await self.send_snapshot(conn)

    async def on_disconnect(self, conn: ConnectionInfo) -> None:
        """Снять соединение с учёта; об отключении водителя узнают администраторы."""
        await self.manager.disconnect(conn.connection_id)
        if conn.role == ObserverRole.DRIVER and conn.driver_id:
            self.manager.broadcast_driver_update(DriverOffline(driver_id=conn.driver_id))

    async def send_snapshot(self, conn: ConnectionInfo) -> None:
        drivers = await self._store.list()
        self.manager.send_personal(conn.connection_id, AdminSnapshot(drivers=drivers))

    # =========================================================================
    # ВХОДЯЩИЕ КАДРЫ
    # =========================================================================

    async def handle_text(self, conn: ConnectionInfo, raw: str) -> None:
        """Разобрать кадр и вызвать обработчик события."""
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            self._send_error(conn, "bad_json", "Кадр не является корректным JSON")
            return

        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            self._send_error(conn, "bad_frame", "Ожидается объект {\"event\": ..., \"data\": ...}")
            return

        event_name = frame["event"]
        data = frame.get("data") or {}
        if not isinstance(data, dict):
            self._send_error(conn, "bad_frame", "Поле data должно быть объектом")
            return

        handler = self._handlers.get(event_name)
        if handler is None:
            self._send_error(conn, "unknown_event", f"Неизвестное событие: {event_name}")
            return

        try:
            await handler(conn, data)
        except ValidationError as e:
            self._send_error(conn, "validation_error", self._format_validation_error(e))
        except SwiftRideError as e:
            await log_debug(
                f"Событие {event_name} от {conn.connection_id} отклонено: {e.message}",
                logger_name="realtime_ws",
            )
            self._send_error(conn, e.error_code, e.message, e.details)
        except Exception as e:
            # Сбой одного запроса не закрывает соединение
            await log_error(
                f"Ошибка обработки события {event_name} от {conn.connection_id}: {e}",
                logger_name="realtime_ws",
                exc_info=True,
            )
            self._send_error(conn, "internal_error", "Внутренняя ошибка сервера")

    def _send_error(
        self,
        conn: ConnectionInfo,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.manager.send_personal(
            conn.connection_id, ErrorEvent(code=code, message=message, details=details)
        )

    @staticmethod
    def _format_validation_error(error: ValidationError) -> str:
        return "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'data'}: {err['msg']}"
            for err in error.errors()
        )

    # =========================================================================
    # ОБРАБОТЧИКИ СОБЫТИЙ
    # =========================================================================

    def _own_driver_id(self, conn: ConnectionInfo, driver_id: str) -> str:
        """Id водителя соединения; чужой id запрещён."""
        if conn.role != ObserverRole.DRIVER:
            raise ForbiddenError("Событие доступно только соединению водителя")
        if driver_id and driver_id != conn.driver_id:
            raise ForbiddenError(
                "Соединение может управлять только собственной записью водителя",
                driver_id=driver_id,
            )
        return conn.driver_id or ""

    async def _on_driver_location(self, conn: ConnectionInfo, data: dict[str, Any]) -> None:
        if conn.role != ObserverRole.DRIVER:
            raise ForbiddenError("Геолокацию отправляет только соединение водителя")

        sample = LocationSample.model_validate(data)
        driver_id = self._own_driver_id(conn, sample.driver_id)
        await self._ingest.ingest(sample.model_copy(update={"driver_id": driver_id}))

    async def _on_driver_status(self, conn: ConnectionInfo, data: dict[str, Any]) -> None:
        request = DriverStatusRequest.model_validate(data)
        driver_id = self._own_driver_id(conn, request.driver_id)
        await self._drivers.set_status(driver_id, request.status)

    async def _on_request_trip(self, conn: ConnectionInfo, data: dict[str, Any]) -> None:
        request = CreateTripRequest.model_validate(data)
        customer_id = conn.user_id if conn.role == ObserverRole.CUSTOMER else None

        result = await self._matcher.request_trip(request, customer_id=customer_id)

        # Соединение без топика заказчика не получило trip-accepted рассылкой
        notified = customer_topic(result.trip.customer_id) in self.manager.get_subscriptions(conn.connection_id)
        self.manager.subscribe(conn.connection_id, trip_topic(result.trip.id))
        if not notified:
            self.manager.send_personal(conn.connection_id, TripAccepted.from_trip(result.trip))

    async def _on_subscribe(self, conn: ConnectionInfo, data: dict[str, Any]) -> None:
        request = SubscribeRequest.model_validate(data)
        topic = trip_topic(request.trip_id)
        self.manager.subscribe(conn.connection_id, topic)
        self.manager.send_personal(
            conn.connection_id,
            SubscriptionChanged(event_type=RealtimeEvents.SUBSCRIBED, topic=topic),
        )

    async def _on_unsubscribe(self, conn: ConnectionInfo, data: dict[str, Any]) -> None:
        request = SubscribeRequest.model_validate(data)
        topic = trip_topic(request.trip_id)
        self.manager.unsubscribe(conn.connection_id, topic)
        self.manager.send_personal(
            conn.connection_id,
            SubscriptionChanged(event_type=RealtimeEvents.UNSUBSCRIBED, topic=topic),
        )

    async def _on_snapshot(self, conn: ConnectionInfo, data: dict[str, Any]) -> None:
        if conn.role != ObserverRole.ADMIN:
            raise ForbiddenError("Снимок доступен только администратору")
        await self.send_snapshot(conn)

    async def _on_ping(self, conn: ConnectionInfo, data: dict[str, Any]) -> None:
        self.manager.send_personal(conn.connection_id, Pong())
