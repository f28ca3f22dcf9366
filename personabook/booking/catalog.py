"""Persona catalog and bookable time slots.

Persona definitions are static (built in, or overridden from config). Prices
and time slots live in the database so operators can change them without a
restart; both reads fall back to static values when the store is unavailable.
"""

import dataclasses
import logging

from personabook.core.config import PersonaConfig
from personabook.core.errors import PersonaBookError
from personabook.db.database import DatabaseManager
from personabook.db.models import TimeSlotRecord
from personabook.db.repositories import CatalogRepository
from personabook.model.persona import Persona, PersonaResolution, TimeSlot

logger = logging.getLogger(__name__)


BUILTIN_PERSONAS: tuple[Persona, ...] = (
    Persona(
        id="anna",
        name="Anna",
        model="GigaChat-2-Max",
        description="Interactive assistant",
        specialty="Conversation and support with everyday tasks",
        greeting="Hello! I'm Anna. I can help you talk things through and get useful advice. What's on your mind?",
        prompt=(
            "You are Anna, a virtual assistant focused on support and advice in everyday life. "
            "Help the user break down problems, offer recommendations and ask clarifying questions "
            "so the user finds their own solutions."
        ),
        price_per_minute=0.1,
    ),
    Persona(
        id="maxim",
        name="Maxim",
        model="GigaChat-2-Pro",
        description="Mentor",
        specialty="Self-development and planning",
        greeting="Hi! I'm Maxim. I'll help you plan, build skills and understand yourself better. Where shall we start?",
        prompt=(
            "You are Maxim, a virtual mentor for self-development. Help the user set goals, plan "
            "and develop skills. Ask leading questions and give advice without imposing decisions."
        ),
        price_per_minute=0.09,
    ),
    Persona(
        id="sofia",
        name="Sofia",
        model="deepseek-chat",
        description="Consultant",
        specialty="Support and motivation",
        greeting="Good day! I'm Sofia. I'm ready to discuss ideas and tasks, or help you find motivation for new goals.",
        prompt=(
            "You are Sofia, a virtual consultant for support and motivation. Create a safe space to "
            "discuss ideas and goals, help structure thoughts and let the user find solutions."
        ),
        price_per_minute=0.08,
    ),
    Persona(
        id="alexey",
        name="Alexey",
        model="GigaChat-2",
        description="Coach",
        specialty="Goal setting and productivity",
        greeting="Hello! I'm Alexey. I'll help you define goals and build an action plan. Where shall we start?",
        prompt=(
            "You are Alexey, a virtual coach for goal setting and productivity. Help the user identify "
            "tasks, build plans and find ways to reach goals, asking clarifying questions along the way."
        ),
        price_per_minute=0.07,
    ),
)

DEFAULT_TIME_SLOTS: tuple[TimeSlot, ...] = (
    TimeSlot(id=1, duration_minutes=15, description="Quick session", sort_order=1),
    TimeSlot(id=2, duration_minutes=30, description="Standard session", sort_order=2),
    TimeSlot(id=3, duration_minutes=60, description="Extended session", sort_order=3),
)

FALLBACK_TIME_SLOT = TimeSlot(id=1, duration_minutes=30, description="Standard session", sort_order=1)


def _slot_from_record(record: TimeSlotRecord) -> TimeSlot:
    return TimeSlot(
        id=record.id,
        duration_minutes=record.duration_minutes,
        description=record.description,
        price_multiplier=record.price_multiplier,
        is_active=record.is_active,
        sort_order=record.sort_order,
    )


class PersonaCatalog:
    """Read-only persona lookup plus live prices and time slots.

    Args:
        db: Database manager holding the price and slot tables.
        personas: Persona overrides; the built-in catalog is used when empty.
        default_persona_id: Persona returned for unknown ids. Defaults to the
            first persona in the catalog.
    """

    def __init__(
        self,
        db: DatabaseManager,
        personas: list[PersonaConfig] | None = None,
        default_persona_id: str | None = None,
    ):
        self.db = db
        if personas:
            self._personas = {p.id: Persona(**p.model_dump()) for p in personas}
        else:
            self._personas = {p.id: p for p in BUILTIN_PERSONAS}

        if default_persona_id is not None and default_persona_id not in self._personas:
            raise ValueError(f"Default persona '{default_persona_id}' is not in the catalog")
        self.default_persona_id = default_persona_id or next(iter(self._personas))

    def all(self) -> list[Persona]:
        return list(self._personas.values())

    def get(self, persona_id: str) -> Persona | None:
        return self._personas.get(persona_id)

    def resolve(self, persona_id: str) -> PersonaResolution:
        """Resolve an id, falling back to the default persona when unknown."""
        persona = self._personas.get(persona_id)
        if persona is not None:
            return PersonaResolution(persona=persona, requested_id=persona_id, is_fallback=False)
        if persona_id:
            logger.warning(f"Unknown persona '{persona_id}', falling back to '{self.default_persona_id}'")
        return PersonaResolution(
            persona=self._personas[self.default_persona_id],
            requested_id=persona_id,
            is_fallback=True,
        )

    async def resolve_with_price(self, persona_id: str) -> PersonaResolution:
        """Like ``resolve`` but with the live per-minute price from the store."""
        resolution = self.resolve(persona_id)
        persona = resolution.persona
        try:
            price = await self.db.run(lambda s: CatalogRepository(s).get_price(persona.id))
        except PersonaBookError as e:
            logger.warning(f"Price lookup failed for '{persona.id}' (kind={e.kind}); using static price")
            return resolution
        if price is None:
            return resolution
        return dataclasses.replace(
            resolution, persona=dataclasses.replace(persona, price_per_minute=price)
        )

    async def list_time_slots(self) -> list[TimeSlot]:
        """Active slots in display order; one default slot if the store fails."""
        try:
            records = await self.db.run(lambda s: CatalogRepository(s).list_active_slots())
        except PersonaBookError as e:
            logger.error(f"Error fetching time slots (kind={e.kind}): {e}")
            return [FALLBACK_TIME_SLOT]
        return [_slot_from_record(r) for r in records] or [FALLBACK_TIME_SLOT]

    async def get_time_slot(self, slot_id: int) -> TimeSlot | None:
        for slot in await self.list_time_slots():
            if slot.id == slot_id:
                return slot
        return None

    async def seed(self) -> None:
        """Insert default prices and time slots that are not in the store yet."""

        async def _seed(s):
            repo = CatalogRepository(s)
            await repo.seed_prices({p.id: p.price_per_minute for p in self._personas.values()})
            return await repo.seed_slots(
                [
                    TimeSlotRecord(
                        id=slot.id,
                        duration_minutes=slot.duration_minutes,
                        description=slot.description,
                        price_multiplier=slot.price_multiplier,
                        is_active=slot.is_active,
                        sort_order=slot.sort_order,
                    )
                    for slot in DEFAULT_TIME_SLOTS
                ]
            )

        inserted = await self.db.run(_seed)
        if inserted:
            logger.info(f"Seeded {inserted} default time slots")
