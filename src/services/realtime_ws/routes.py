# src/services/realtime_ws/routes.py
"""
WebSocket endpoint realtime-канала.

- /ws?role=admin — администратор (все обновления водителей)
- /ws?role=customer&user_id=..&trip_id=.. — заказчик
- /ws?role=driver&driver_id=.. — водитель

Идентичность в query-параметрах считается уже проверенной внешним шлюзом.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from src.services.realtime_ws.handlers import RealtimeHandler
from src.shared.models.enums import ObserverRole

router = APIRouter()


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    role: ObserverRole = Query(default=ObserverRole.CUSTOMER),
    user_id: str | None = Query(default=None),
    driver_id: str | None = Query(default=None),
    trip_id: str | None = Query(default=None),
) -> None:
    """
    Realtime-канал наблюдателей и водителей.

    Входящие кадры: {"event": "driver:location", "data": {"lat": .., "lng": ..}},
    {"event": "subscribe", "data": {"tripId": ..}}, {"event": "ping"} и т.д.
    """
    handler: RealtimeHandler = websocket.app.state.realtime_handler

    if role == ObserverRole.DRIVER and not driver_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    conn = await handler.manager.connect(
        websocket,
        role,
        user_id=user_id,
        driver_id=driver_id if role == ObserverRole.DRIVER else None,
    )

    try:
        await handler.on_connect(conn, trip_id=trip_id)
        while True:
            raw = await websocket.receive_text()
            await handler.handle_text(conn, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await handler.on_disconnect(conn)
