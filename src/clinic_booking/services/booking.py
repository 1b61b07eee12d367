"""
Booking engine - claims slots, creates and cancels appointments.

Each public method is one database transaction. The slot claim is a guarded
UPDATE, so when several callers race for the same slot exactly one flips it and
the rest get SlotUnavailable.
"""

from __future__ import annotations
import logging
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker
from clinic_booking.core.db import transaction
from clinic_booking.core.errors import (
    AppointmentNotFound,
    InvalidStatusChange,
    OverlapConflict,
    ReferentialViolation,
    SlotUnavailable,
    ValidationError,
)
from clinic_booking.models import (
    Appointment, AppointmentStatus, INACTIVE_STATUSES, Patient, TimeSlot,
)
from clinic_booking.services.slot_ledger import SlotLedger

log = logging.getLogger(__name__)

BOOKED_MESSAGE = "Appointment booked successfully"
UNAVAILABLE_MESSAGE = "Slot is no longer available"
CANCELLED_MESSAGE = "Appointment cancelled successfully"


def ranges_overlap(start_a, end_a, start_b, end_b) -> bool:
    """Half-open ranges [start_a, end_a) and [start_b, end_b) intersect."""
    return start_a < end_b and start_b < end_a


class BookingEngine:

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def book(
        self,
        patient_id: int,
        slot_id: int,
        appointment_type: str,
        reason: str | None = None,
        notes: str | None = None,
    ) -> Appointment:
        """Hold the slot and create a Scheduled appointment, or change nothing.

        Raises SlotUnavailable when the slot is held or missing, OverlapConflict
        when the patient already has an active appointment at that time, and
        ReferentialViolation for an unknown patient.
        """
        if not appointment_type:
            raise ValidationError("appointment_type is required")

        with transaction(self.session_factory) as session:
            ledger = SlotLedger(session)

            # Claim first: holding the slot's write lock for the rest of the
            # transaction is what makes the later checks race-free.
            if not ledger.mark_unavailable(slot_id):
                log.warning("Booking rejected: slot %s unavailable (patient %s)", slot_id, patient_id)
                raise SlotUnavailable(slot_id)

            self._lock_patient(session, patient_id)

            slot = session.get(TimeSlot, slot_id)
            conflict = self._find_overlap(session, patient_id, slot)
            if conflict is not None:
                log.warning("Booking rejected: patient %s overlaps appointment %s (slot %s)",
                            patient_id, conflict, slot_id)
                raise OverlapConflict(patient_id, slot_id, conflict)

            appointment = Appointment(
                patient_id=patient_id,
                slot_id=slot_id,
                status_id=int(AppointmentStatus.SCHEDULED),
                appointment_type=appointment_type,
                reason_for_visit=reason,
                notes=notes,
            )
            session.add(appointment)
            session.flush()

        log.info("Booked appointment %s: patient %s, slot %s",
                 appointment.appointment_id, patient_id, slot_id)
        return appointment

    def _lock_patient(self, session, patient_id: int) -> Patient:
        """Row lock that serializes overlap checks for one patient."""
        patient = session.scalar(
            select(Patient).where(Patient.patient_id == patient_id).with_for_update()
        )
        if patient is None:
            raise ReferentialViolation(f"Patient {patient_id} not found")
        return patient

    def _find_overlap(self, session, patient_id: int, slot: TimeSlot) -> int | None:
        """Id of an active appointment of the patient overlapping the slot, if any."""
        stmt = (
            select(Appointment.appointment_id, TimeSlot.start_time, TimeSlot.end_time)
            .join(TimeSlot, Appointment.slot_id == TimeSlot.slot_id)
            .where(
                Appointment.patient_id == patient_id,
                Appointment.status_id.not_in([int(s) for s in INACTIVE_STATUSES]),
                TimeSlot.slot_date == slot.slot_date,
                TimeSlot.slot_id != slot.slot_id,
            )
        )
        for appointment_id, start, end in session.execute(stmt):
            if ranges_overlap(start, end, slot.start_time, slot.end_time):
                return appointment_id
        return None

    def cancel(self, appointment_id: int) -> Appointment:
        """Cancel and release the slot. Re-cancelling is a no-op."""
        with transaction(self.session_factory) as session:
            appointment = self._get_for_update(session, appointment_id)

            if appointment.status_id == AppointmentStatus.CANCELLED:
                log.info("Appointment %s already cancelled; nothing to do", appointment_id)
                return appointment

            appointment.status_id = int(AppointmentStatus.CANCELLED)
            SlotLedger(session).mark_available(appointment.slot_id)
            session.flush()

        log.info("Cancelled appointment %s; slot %s released", appointment_id, appointment.slot_id)
        return appointment

    def delete(self, appointment_id: int) -> None:
        """Remove the appointment row. Use cancel() when an audit trail is needed."""
        with transaction(self.session_factory) as session:
            appointment = self._get_for_update(session, appointment_id)
            slot_id = appointment.slot_id
            held = appointment.status_id != AppointmentStatus.CANCELLED

            session.delete(appointment)
            session.flush()
            # a cancelled appointment no longer owns its slot; it may be re-booked
            if held:
                SlotLedger(session).mark_available(slot_id)

        log.info("Deleted appointment %s (slot %s %s)", appointment_id, slot_id,
                 "released" if held else "untouched")

    def update_status(self, appointment_id: int, status: AppointmentStatus | int) -> Appointment:
        status = AppointmentStatus(status)
        if status == AppointmentStatus.CANCELLED:
            return self.cancel(appointment_id)

        with transaction(self.session_factory) as session:
            # patient before appointment, the order book() takes its locks in
            patient_id = session.scalar(
                select(Appointment.patient_id).where(Appointment.appointment_id == appointment_id)
            )
            if patient_id is None:
                raise AppointmentNotFound(appointment_id)
            self._lock_patient(session, patient_id)
            appointment = self._get_for_update(session, appointment_id)
            if appointment.status_id == AppointmentStatus.CANCELLED:
                raise InvalidStatusChange(
                    f"Appointment {appointment_id} is cancelled; book a new appointment instead"
                )
            previous = appointment.status
            if previous in INACTIVE_STATUSES and status not in INACTIVE_STATUSES:
                # a no-show coming back into the schedule must still fit it
                slot = session.get(TimeSlot, appointment.slot_id)
                conflict = self._find_overlap(session, appointment.patient_id, slot)
                if conflict is not None:
                    raise OverlapConflict(appointment.patient_id, slot.slot_id, conflict)
            appointment.status_id = int(status)
            session.flush()

        log.info("Appointment %s: %s -> %s", appointment_id, previous.label, status.label)
        return appointment

    def get(self, appointment_id: int) -> Appointment:
        with transaction(self.session_factory) as session:
            appointment = session.get(Appointment, appointment_id)
            if appointment is None:
                raise AppointmentNotFound(appointment_id)
            return appointment

    def appointments_for_patient(self, patient_id: int, active_only: bool = False) -> list[Appointment]:
        with transaction(self.session_factory) as session:
            stmt = (
                select(Appointment)
                .join(TimeSlot, Appointment.slot_id == TimeSlot.slot_id)
                .where(Appointment.patient_id == patient_id)
                .order_by(TimeSlot.slot_date, TimeSlot.start_time)
            )
            if active_only:
                stmt = stmt.where(Appointment.status_id.not_in([int(s) for s in INACTIVE_STATUSES]))
            return list(session.scalars(stmt))

    def _get_for_update(self, session, appointment_id: int) -> Appointment:
        appointment = session.scalar(
            select(Appointment)
            .where(Appointment.appointment_id == appointment_id)
            .with_for_update()
        )
        if appointment is None:
            raise AppointmentNotFound(appointment_id)
        return appointment

    # procedure-style surface: status messages instead of exceptions for slot contention

    def book_appointment(
        self,
        patient_id: int,
        slot_id: int,
        appointment_type: str,
        reason: str | None = None,
    ) -> dict:
        try:
            appointment = self.book(patient_id, slot_id, appointment_type, reason)
        except SlotUnavailable:
            return {"message": UNAVAILABLE_MESSAGE}
        return {"message": BOOKED_MESSAGE, "appointment_id": appointment.appointment_id}

    def cancel_appointment(self, appointment_id: int) -> dict:
        self.cancel(appointment_id)
        return {"message": CANCELLED_MESSAGE}
