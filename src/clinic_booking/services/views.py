"""
Read-only projections: available slots and upcoming appointments.

Recomputed on every call; nothing is materialised.
"""

from __future__ import annotations
from datetime import date
from sqlalchemy import select
from sqlalchemy.orm import Session
from clinic_booking.models import (
    Appointment, AppointmentStatusType, Location, Patient, Specialty, Staff, TimeSlot,
)

def available_slots(
    session: Session,
    today: date | None = None,
    specialty_id: int | None = None,
    location_id: int | None = None,
) -> list[dict]:
    today = today or date.today()
    stmt = (
        select(
            TimeSlot.slot_id,
            Staff.staff_id,
            Staff.first_name.label("doctor_first_name"),
            Staff.last_name.label("doctor_last_name"),
            Specialty.specialty_name,
            Location.location_id,
            Location.location_name,
            Location.address,
            Location.city,
            TimeSlot.slot_date,
            TimeSlot.start_time,
            TimeSlot.end_time,
        )
        .join(Staff, TimeSlot.staff_id == Staff.staff_id)
        .outerjoin(Specialty, Staff.specialty_id == Specialty.specialty_id)
        .join(Location, TimeSlot.location_id == Location.location_id)
        .where(TimeSlot.is_available.is_(True), TimeSlot.slot_date >= today)
        .order_by(TimeSlot.slot_date, TimeSlot.start_time, TimeSlot.slot_id)
    )
    if specialty_id is not None:
        stmt = stmt.where(Staff.specialty_id == specialty_id)
    if location_id is not None:
        stmt = stmt.where(TimeSlot.location_id == location_id)
    return [dict(row) for row in session.execute(stmt).mappings()]


def upcoming_appointments(
    session: Session,
    today: date | None = None,
    patient_id: int | None = None,
) -> list[dict]:
    today = today or date.today()
    stmt = (
        select(
            Appointment.appointment_id,
            Patient.patient_id,
            Patient.first_name.label("patient_first_name"),
            Patient.last_name.label("patient_last_name"),
            Staff.first_name.label("doctor_first_name"),
            Staff.last_name.label("doctor_last_name"),
            Specialty.specialty_name,
            Location.location_name,
            TimeSlot.slot_date,
            TimeSlot.start_time,
            TimeSlot.end_time,
            AppointmentStatusType.status_name,
            Appointment.appointment_type,
            Appointment.reason_for_visit,
        )
        .join(Patient, Appointment.patient_id == Patient.patient_id)
        .join(TimeSlot, Appointment.slot_id == TimeSlot.slot_id)
        .join(Staff, TimeSlot.staff_id == Staff.staff_id)
        .outerjoin(Specialty, Staff.specialty_id == Specialty.specialty_id)
        .join(Location, TimeSlot.location_id == Location.location_id)
        .join(AppointmentStatusType, Appointment.status_id == AppointmentStatusType.status_id)
        .where(TimeSlot.slot_date >= today)
        .order_by(TimeSlot.slot_date, TimeSlot.start_time, Appointment.appointment_id)
    )
    if patient_id is not None:
        stmt = stmt.where(Appointment.patient_id == patient_id)
    return [dict(row) for row in session.execute(stmt).mappings()]
