# src/shared/events/system_events.py
"""
Служебные события протокола (подписки, ping, ошибки).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from src.shared.events.base import RealtimeEvent, RealtimeEvents


class ErrorEvent(RealtimeEvent):
    """Диагностика для отправившего подключения."""

    event_type: Literal["error"] = Field(default=RealtimeEvents.ERROR, exclude=True)

    code: str
    message: str
    details: dict[str, Any] | None = None


class SubscriptionChanged(RealtimeEvent):
    """Подтверждение подписки/отписки."""

    topic: str


class Pong(RealtimeEvent):
    event_type: Literal["pong"] = Field(default=RealtimeEvents.PONG, exclude=True)
