from enum import Enum


class DriverStatus(str, Enum):
    """Статусы водителя."""
    OFFLINE = "offline"
    AVAILABLE = "available"
    BUSY = "busy"
    ON_BREAK = "on_break"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def _missing_(cls, value: object) -> "DriverStatus | None":
        # Клиенты исторически шлют "online" вместо "available"
        if isinstance(value, str) and value.lower() == "online":
            return cls.AVAILABLE
        return None


class TripStatus(str, Enum):
    """Статусы поездки."""
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (TripStatus.COMPLETED, TripStatus.CANCELLED)

    @classmethod
    def _missing_(cls, value: object) -> "TripStatus | None":
        # Курьерский клиент завершает доставку статусом "delivered"
        if isinstance(value, str) and value.lower() == "delivered":
            return cls.COMPLETED
        return None


class ObserverRole(str, Enum):
    """Роль realtime-подключения."""
    ADMIN = "admin"
    CUSTOMER = "customer"
    DRIVER = "driver"

    def __str__(self) -> str:
        return self.value


class PaymentMethod(str, Enum):
    """Способы оплаты."""
    CASH = "cash"
    CARD = "card"
    WALLET = "wallet"

    def __str__(self) -> str:
        return self.value


class TripPriority(str, Enum):
    """Приоритет доставки."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    EXPRESS = "express"

    def __str__(self) -> str:
        return self.value
