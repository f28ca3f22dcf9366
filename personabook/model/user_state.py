"""Domain models for per-user conversational state."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from personabook.core.timezone import ensure_utc


@dataclass
class ChatMessage:
    """A single role-tagged message (system, user or assistant)."""

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        return cls(role=str(data["role"]), content=str(data.get("content") or ""))


@dataclass
class UserSession:
    """A paid chat window derived from a booking.

    Attributes:
        persona_id: Persona the user talks to during this session.
        booking_id: Booking that funded the session.
        session_start: When the paid window opens.
        paid_until: When the paid window closes.
        total_price: Price paid for the window.
        messages_exchanged: Number of completed chat turns.
        history: Role-tagged messages sent to the chat model.
        is_active: Whether the user may chat right now.
        scheduled_start: Set for bookings made for a future time.
        ended_at: When the session was closed (elapsed or ended early).
    """

    persona_id: str
    booking_id: str | None
    session_start: datetime
    paid_until: datetime
    total_price: float
    messages_exchanged: int = 0
    history: list[ChatMessage] = field(default_factory=list)
    is_active: bool = False
    scheduled_start: datetime | None = None
    ended_at: datetime | None = None

    def can_chat(self, now: datetime) -> bool:
        """Active and still inside the paid window."""
        return self.is_active and now < self.paid_until

    def is_due_to_start(self, now: datetime) -> bool:
        """Scheduled, not yet opened, and the start time has arrived."""
        return (
            not self.is_active
            and self.ended_at is None
            and self.scheduled_start is not None
            and now >= self.scheduled_start
        )

    def is_elapsed(self, now: datetime) -> bool:
        return self.is_active and now > self.paid_until

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary with ISO 8601 datetime strings."""
        return {
            "persona_id": self.persona_id,
            "booking_id": self.booking_id,
            "session_start": self.session_start.isoformat(),
            "paid_until": self.paid_until.isoformat(),
            "total_price": self.total_price,
            "messages_exchanged": self.messages_exchanged,
            "history": [m.to_dict() for m in self.history],
            "is_active": self.is_active,
            "scheduled_start": self.scheduled_start.isoformat() if self.scheduled_start else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserSession":
        """Create instance from dictionary with ISO 8601 datetime strings."""
        return cls(
            persona_id=data["persona_id"],
            booking_id=data.get("booking_id"),
            session_start=ensure_utc(datetime.fromisoformat(data["session_start"])),
            paid_until=ensure_utc(datetime.fromisoformat(data["paid_until"])),
            total_price=float(data.get("total_price", 0.0)),
            messages_exchanged=int(data.get("messages_exchanged", 0)),
            history=[ChatMessage.from_dict(m) for m in data.get("history", [])],
            is_active=bool(data.get("is_active", False)),
            scheduled_start=(
                ensure_utc(datetime.fromisoformat(data["scheduled_start"]))
                if data.get("scheduled_start")
                else None
            ),
            ended_at=ensure_utc(datetime.fromisoformat(data["ended_at"])) if data.get("ended_at") else None,
        )


@dataclass
class UserState:
    """Everything PersonaBook remembers about one user.

    A default instance is what a first-time user (or a failed store read) gets.
    """

    persona_id: str = ""
    current_session: UserSession | None = None
    conversation_history: list[ChatMessage] = field(default_factory=list)
    preferences: dict[str, Any] = field(default_factory=dict)

    @property
    def temperature(self) -> float | None:
        value = self.preferences.get("temperature")
        return float(value) if value is not None else None

    @temperature.setter
    def temperature(self, value: float | None) -> None:
        if value is None:
            self.preferences.pop("temperature", None)
        else:
            self.preferences["temperature"] = value

    def history_payload(self) -> list[dict[str, str]]:
        return [m.to_dict() for m in self.conversation_history]

    def session_payload(self) -> dict[str, Any] | None:
        return self.current_session.to_dict() if self.current_session else None
