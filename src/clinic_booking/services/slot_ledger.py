"""
Slot ledger: the open/held flag of each bookable time slot.

Every method works on the session it was given, so a flip only becomes visible
when the caller's transaction commits.
"""

from __future__ import annotations
import logging
from datetime import date, datetime, time, timedelta
from sqlalchemy import select, update
from sqlalchemy.orm import Session
from clinic_booking.core.errors import DuplicateSlot, ReferentialViolation, ValidationError
from clinic_booking.models import Location, Staff, TimeSlot

log = logging.getLogger(__name__)

class SlotLedger:

    def __init__(self, session: Session):
        self.session = session

    def get(self, slot_id: int) -> TimeSlot | None:
        return self.session.get(TimeSlot, slot_id)

    def is_available(self, slot_id: int) -> bool:
        flag = self.session.scalar(
            select(TimeSlot.is_available).where(TimeSlot.slot_id == slot_id)
        )
        return bool(flag)

    def mark_unavailable(self, slot_id: int) -> bool:
        """Flip open -> held. Returns False if the slot was already held or does not exist."""
        return self._flip(slot_id, expected=True)

    def mark_available(self, slot_id: int) -> bool:
        """Flip held -> open. Returns False if the slot was already open or does not exist."""
        return self._flip(slot_id, expected=False)

    def _flip(self, slot_id: int, expected: bool) -> bool:
        # The WHERE on the current value makes the flip a compare-and-set:
        # of two racing writers, the second matches zero rows.
        result = self.session.execute(
            update(TimeSlot)
            .where(TimeSlot.slot_id == slot_id, TimeSlot.is_available == expected)
            .values(is_available=not expected)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def add_slot(
        self,
        staff_id: int,
        location_id: int,
        slot_date: date,
        start_time: time,
        end_time: time,
    ) -> TimeSlot:
        if start_time >= end_time:
            raise ValidationError(f"Slot must start before it ends ({start_time} >= {end_time})")
        if self.session.get(Staff, staff_id) is None:
            raise ReferentialViolation(f"Staff {staff_id} not found")
        if self.session.get(Location, location_id) is None:
            raise ReferentialViolation(f"Location {location_id} not found")

        clash = self.session.scalar(
            select(TimeSlot.slot_id).where(
                TimeSlot.staff_id == staff_id,
                TimeSlot.location_id == location_id,
                TimeSlot.slot_date == slot_date,
                TimeSlot.start_time == start_time,
            )
        )
        if clash is not None:
            raise DuplicateSlot(
                f"Slot already exists for staff {staff_id} at location {location_id} "
                f"on {slot_date} {start_time} (slot {clash})"
            )

        slot = TimeSlot(
            staff_id=staff_id,
            location_id=location_id,
            slot_date=slot_date,
            start_time=start_time,
            end_time=end_time,
            is_available=True,
        )
        self.session.add(slot)
        self.session.flush()
        return slot

    def generate_slots(
        self,
        staff_id: int,
        location_id: int,
        slot_date: date,
        day_start: time,
        day_end: time,
        minutes: int = 30,
    ) -> list[TimeSlot]:
        """Cut a working day into consecutive slots; existing start times are skipped."""
        if minutes <= 0:
            raise ValidationError("Slot length must be positive")

        taken = set(self.session.scalars(
            select(TimeSlot.start_time).where(
                TimeSlot.staff_id == staff_id,
                TimeSlot.location_id == location_id,
                TimeSlot.slot_date == slot_date,
            )
        ))
        step = timedelta(minutes=minutes)
        current = datetime.combine(slot_date, day_start)
        last = datetime.combine(slot_date, day_end)

        created = []
        while current + step <= last:
            start, end = current.time(), (current + step).time()
            if start not in taken:
                created.append(self.add_slot(staff_id, location_id, slot_date, start, end))
            current += step

        log.info("Generated %d slots for staff %s at location %s on %s",
                 len(created), staff_id, location_id, slot_date)
        return created

    def slots_for_staff(self, staff_id: int, slot_date: date | None = None) -> list[TimeSlot]:
        stmt = select(TimeSlot).where(TimeSlot.staff_id == staff_id)
        if slot_date is not None:
            stmt = stmt.where(TimeSlot.slot_date == slot_date)
        return list(self.session.scalars(stmt.order_by(TimeSlot.slot_date, TimeSlot.start_time)))
