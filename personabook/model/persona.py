"""Domain models for the persona catalog."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Persona:
    """A conversational persona users can book time with."""

    id: str
    name: str
    model: str
    description: str
    specialty: str
    greeting: str
    prompt: str
    price_per_minute: float

    def calculate_price(self, duration_minutes: int, multiplier: float = 1.0) -> float:
        return round(self.price_per_minute * duration_minutes * multiplier, 6)


@dataclass(frozen=True)
class PersonaResolution:
    """Result of resolving a persona id against the catalog.

    ``is_fallback`` is True when the requested id was unknown and the
    designated default persona was returned instead.
    """

    persona: Persona
    requested_id: str
    is_fallback: bool


@dataclass(frozen=True)
class TimeSlot:
    """A bookable duration offered to users."""

    id: int
    duration_minutes: int
    description: str
    price_multiplier: float = 1.0
    is_active: bool = True
    sort_order: int = 0

    def calculate_price(self, price_per_minute: float) -> float:
        return round(price_per_minute * self.duration_minutes * self.price_multiplier, 6)
