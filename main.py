#!/usr/bin/env python3
# main.py
"""
Главная точка входа SwiftRide.
Запускает HTTP/WebSocket сервер ядра трекинга и диспетчеризации.
"""

from __future__ import annotations

import asyncio
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg


async def run_server() -> None:
    """Запускает uvicorn с приложением из src.app."""
    import uvicorn

    await log_info(
        f"Запуск {settings.system.PROJECT_NAME} v{settings.system.VERSION} "
        f"на {settings.deployment.APP_HOST}:{settings.deployment.APP_PORT}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.app:create_app",
        factory=True,
        host=settings.deployment.APP_HOST,
        port=settings.deployment.APP_PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("Сервер: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def main() -> None:
    """Главная функция запуска."""
    setup_logging()

    try:
        await run_server()
    except KeyboardInterrupt:
        await log_info("Получен сигнал остановки (Ctrl+C)", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}", exc_info=True)
        raise
    finally:
        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Выводит справку по использованию."""
    print(f"""
SwiftRide v{settings.system.VERSION} — live-трекинг водителей и диспетчеризация

Использование:
    python main.py

Настройки: config/config.json, секреты и адреса — через переменные окружения (.env).
Хранилища выбираются ключами DRIVER_STATE_BACKEND (memory|redis)
и TRIP_BACKEND (memory|postgres).
    """)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1].lower() in ("--help", "-h"):
        print_usage()
        sys.exit(0)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
