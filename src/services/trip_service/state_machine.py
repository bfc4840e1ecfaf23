from src.shared.models.enums import TripStatus


class TripStateMachine:
    ALLOWED_TRANSITIONS = {
        TripStatus.REQUESTED: [TripStatus.ACCEPTED, TripStatus.CANCELLED],
        TripStatus.ACCEPTED: [TripStatus.IN_PROGRESS, TripStatus.CANCELLED],
        TripStatus.IN_PROGRESS: [TripStatus.COMPLETED, TripStatus.CANCELLED],
        TripStatus.COMPLETED: [],
        TripStatus.CANCELLED: []
    }

    # Поле с временем перехода в статус
    TIMESTAMP_FIELDS = {
        TripStatus.ACCEPTED: "accepted_at",
        TripStatus.IN_PROGRESS: "started_at",
        TripStatus.COMPLETED: "completed_at",
        TripStatus.CANCELLED: "cancelled_at",
    }

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = TripStatus(current_status)
            new = TripStatus(new_status)
            return new in TripStateMachine.ALLOWED_TRANSITIONS.get(curr, [])
        except ValueError:
            return False
