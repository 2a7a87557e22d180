"""
Yard Service - container yard operations around the planning engine.

Business logic for:
- Event processing (wiring the event processor to the database)
- Event history and action-plan lookup
- Yard status statistics
- Yard environment listing and manual slot maintenance
- Demo yard seeding
"""
import logging
import random
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.yard import YardSlot, YardEvent, MovePlanRecord, Preplanning
from app.schemas.yard import SlotUpsert
from app.services.audit_service import AuditService, AuditRecorder
from app.services.yard.cost_model import build_cost_model
from app.services.yard.errors import GravityViolation, YardPlanningError
from app.services.yard.event_processor import EventProcessor
from app.services.yard.move_plan import MovePlanBuilder
from app.services.yard.snapshot import format_sid
from app.services.yard.sql_store import SqlYardStore


logger = logging.getLogger(__name__)

SLOT_ATTRIBUTES = ("is_import", "is_export", "is_reefer", "is_hazard", "is_dry", "weight_kg", "size_ft")


def build_event_processor(session_factory: async_sessionmaker[AsyncSession]) -> EventProcessor:
    """Event processor backed by the SQL store, configured from settings."""
    cost_model = build_cost_model(
        settings.COST_MODEL,
        crane_id=settings.DEFAULT_CRANE_ID,
        seed=settings.COST_RANDOM_SEED,
    )
    return EventProcessor(
        store=SqlYardStore(session_factory),
        builder=MovePlanBuilder(cost_model),
        audit=AuditRecorder(session_factory),
        max_attempts=settings.ALLOCATION_MAX_ATTEMPTS,
    )


class YardService:
    """Service for yard queries and maintenance."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ========================================================================
    # EVENTS
    # ========================================================================

    async def list_events(self, limit: int = 20) -> List[YardEvent]:
        """Most recent events first."""
        result = await self.db.execute(
            select(YardEvent)
            .order_by(YardEvent.created_at.desc(), YardEvent.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_latest_event(
        self,
        event_id: Optional[int] = None,
        truck_id: Optional[str] = None,
        container_id: Optional[str] = None
    ) -> Optional[YardEvent]:
        """Latest event matching all given filters, with its move plans loaded."""
        query = select(YardEvent).options(selectinload(YardEvent.move_plans))
        if event_id is not None:
            query = query.where(YardEvent.id == event_id)
        if truck_id:
            query = query.where(YardEvent.truck_id == truck_id)
        if container_id:
            query = query.where(YardEvent.container_id == container_id)

        query = query.order_by(YardEvent.created_at.desc(), YardEvent.id.desc()).limit(1)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_preplannings(self, event_id: int) -> List[Preplanning]:
        result = await self.db.execute(
            select(Preplanning).where(Preplanning.event_id == event_id).order_by(Preplanning.id)
        )
        return list(result.scalars().all())

    # ========================================================================
    # YARD STATUS
    # ========================================================================

    async def get_yard_status(self) -> Dict[str, Any]:
        """Occupancy statistics, recent events and event counts by status."""
        total_slots = (await self.db.execute(select(func.count(YardSlot.id)))).scalar() or 0

        result = await self.db.execute(
            select(YardSlot).where(YardSlot.container_id.is_not(None))
        )
        containers = list(result.scalars().all())

        def count(attribute: str, value: int = 1) -> int:
            return sum(1 for c in containers if getattr(c, attribute) == value)

        statistics = {
            "total_slots": total_slots,
            "occupied_slots": len(containers),
            "empty_slots": total_slots - len(containers),
            "containers_by_type": {
                "reefer": count("is_reefer"),
                "hazard": count("is_hazard"),
                "dry": count("is_dry"),
            },
            "containers_by_size": {
                "20ft": count("size_ft", 20),
                "40ft": count("size_ft", 40),
            },
            "containers_by_operation": {
                "import": count("is_import"),
                "export": count("is_export"),
                "inter_transhipment": count("is_inter_transhipment"),
                "intra_transhipment": count("is_intra_transhipment"),
            },
        }

        recent_events = await self.list_events(limit=10)

        status_rows = await self.db.execute(
            select(YardEvent.status, func.count(YardEvent.id)).group_by(YardEvent.status)
        )
        event_statistics = {status: total for status, total in status_rows.all()}

        return {
            "timestamp": datetime.now(timezone.utc),
            "statistics": statistics,
            "recent_events": recent_events,
            "event_statistics": event_statistics,
        }

    # ========================================================================
    # YARD ENVIRONMENT
    # ========================================================================

    async def list_slots(self) -> List[YardSlot]:
        """All slots ordered by (yard, block, bay, row, tier)."""
        result = await self.db.execute(
            select(YardSlot).order_by(
                YardSlot.yard, YardSlot.block, YardSlot.bay, YardSlot.row, YardSlot.tier
            )
        )
        return list(result.scalars().all())

    async def _get_slot(self, yard: str, block: str, bay: int, row: int, tier: int) -> Optional[YardSlot]:
        result = await self.db.execute(
            select(YardSlot)
            .where(
                YardSlot.yard == yard,
                YardSlot.block == block,
                YardSlot.bay == bay,
                YardSlot.row == row,
                YardSlot.tier == tier,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert_slot(
        self,
        data: SlotUpsert,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> YardSlot:
        """
        Create or update a slot by position.

        ``container_id`` is only changed when present in the request; an
        explicit null empties the slot. Occupancy changes must keep the
        stack grounded.

        Raises:
            GravityViolation: placement over an empty slot, or emptying a slot
                that has a container on top
            YardPlanningError: the container is already stored elsewhere
        """
        slot = await self._get_slot(data.yard, data.block, data.bay, data.row, data.tier)
        old_data = self._slot_data(slot) if slot else None

        changes_occupant = "container_id" in data.model_fields_set
        if changes_occupant:
            await self._check_occupancy_change(data)

        if slot is None:
            slot = YardSlot(
                yard=data.yard,
                block=data.block,
                bay=data.bay,
                row=data.row,
                tier=data.tier,
                size_ft=data.size_ft or 40,
                container_id=data.container_id,
                is_import=data.is_import or 0,
                is_export=data.is_export or 0,
                is_reefer=data.is_reefer or 0,
                is_hazard=data.is_hazard or 0,
                is_dry=data.is_dry if data.is_dry is not None else 1,
                is_inter_transhipment=0,
                is_intra_transhipment=0,
                weight_kg=data.weight_kg or 0,
                time=datetime.now(timezone.utc),
            )
            self.db.add(slot)
        else:
            if changes_occupant:
                slot.container_id = data.container_id
            for key in SLOT_ATTRIBUTES:
                value = getattr(data, key)
                if value is not None:
                    setattr(slot, key, value)
            slot.time = datetime.now(timezone.utc)

        await self.db.flush()
        if changes_occupant:
            # Re-checked after the write: this transaction now holds the stack
            await self._check_occupancy_change(data)

        await AuditService(self.db).log_slot_updated(
            slot.id, old_data or {}, self._slot_data(slot), ip_address=ip_address, user_agent=user_agent
        )
        logger.info(
            f"Slot {format_sid(slot.yard, slot.block, slot.bay, slot.row)} tier {slot.tier} "
            f"set to container {slot.container_id}"
        )
        return slot

    async def _check_occupancy_change(self, data: SlotUpsert) -> None:
        if data.container_id is not None:
            if data.tier > 1:
                below = await self._get_slot(data.yard, data.block, data.bay, data.row, data.tier - 1)
                if below is None or below.container_id is None:
                    raise GravityViolation(
                        f"Cannot place {data.container_id} at tier {data.tier}: slot below is empty"
                    )
            existing = await self.db.execute(
                select(YardSlot)
                .where(YardSlot.container_id == data.container_id)
                .execution_options(populate_existing=True)
            )
            target = (data.bay, data.row, data.tier, data.block, data.yard)
            holder = next(
                (s for s in existing.scalars() if (s.bay, s.row, s.tier, s.block, s.yard) != target),
                None,
            )
            if holder is not None:
                raise YardPlanningError(
                    f"Container {data.container_id} is already stored at "
                    f"{format_sid(holder.yard, holder.block, holder.bay, holder.row)} tier {holder.tier}",
                    error_code="DUPLICATE_CONTAINER",
                )
        else:
            above = await self._get_slot(data.yard, data.block, data.bay, data.row, data.tier + 1)
            if above is not None and above.container_id is not None:
                raise GravityViolation(
                    f"Cannot empty tier {data.tier}: {above.container_id} is stacked on it"
                )

    @staticmethod
    def _slot_data(slot: YardSlot) -> Dict[str, Any]:
        return {
            "container_id": slot.container_id,
            **{key: getattr(slot, key) for key in SLOT_ATTRIBUTES},
        }

    # ========================================================================
    # SEEDING
    # ========================================================================

    async def seed_yard(
        self,
        yard: str = "Y1",
        blocks: Optional[List[str]] = None,
        max_bay: int = 5,
        max_row: int = 4,
        max_tier: int = 4,
        occupancy: float = 0.7,
        rng: Optional[random.Random] = None,
        reset: bool = True
    ) -> Dict[str, int]:
        """
        Build a demo yard: every stack gets a random grounded height.

        Block A leans import, block B leans export, ~10% reefers.
        """
        rng = rng or random.Random()
        blocks = blocks or ["A", "B"]

        if reset:
            await self.db.execute(delete(Preplanning))
            await self.db.execute(delete(MovePlanRecord))
            await self.db.execute(delete(YardEvent))
            await self.db.execute(delete(YardSlot))

        used_ids = set()

        def container_id(prefix: str) -> str:
            while True:
                candidate = f"{prefix}{rng.randint(100000, 999999)}"
                if candidate not in used_ids:
                    used_ids.add(candidate)
                    return candidate

        now = datetime.now(timezone.utc)
        slots = []
        for index, block in enumerate(blocks):
            for bay in range(1, max_bay + 1):
                for row in range(1, max_row + 1):
                    stack_height = rng.randint(1, max_tier) if rng.random() < occupancy else 0
                    for tier in range(1, max_tier + 1):
                        slot = YardSlot(
                            yard=yard, block=block, bay=bay, row=row, tier=tier,
                            size_ft=40, container_id=None, is_dry=1, weight_kg=0, time=now,
                            is_import=0, is_export=0, is_reefer=0, is_hazard=0,
                            is_inter_transhipment=0, is_intra_transhipment=0,
                        )
                        if tier <= stack_height:
                            is_reefer = rng.random() > 0.9
                            leans_import = index % 2 == 0
                            is_import = (rng.random() > 0.2) == leans_import
                            slot.is_import = 1 if is_import else 0
                            slot.is_export = 0 if is_import else 1
                            slot.is_reefer = 1 if is_reefer else 0
                            slot.is_dry = 0 if is_reefer else 1
                            slot.weight_kg = 20000 + rng.randint(0, 9999)
                            prefix = "REF" if is_reefer else ("IMP" if is_import else "EXP")
                            slot.container_id = container_id(prefix)
                        slots.append(slot)

        self.db.add_all(slots)
        await self.db.flush()

        occupied = sum(1 for s in slots if s.container_id)
        logger.info(f"Seeded {len(slots)} slots with {occupied} containers")
        return {"slots": len(slots), "containers": occupied}
