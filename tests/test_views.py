"""Tests for the available-slots and upcoming-appointments views."""

from datetime import date, timedelta

from clinic_booking.services.views import available_slots, upcoming_appointments
from conftest import FUTURE, PAST


def test_available_slots_lists_open_future_slots(session_factory, booking, clinic, make_slot):
    open_late = make_slot("11:00", "11:30")
    open_early = make_slot("08:00", "08:30", staff_id=clinic.other_doctor.staff_id)
    held = make_slot("09:00", "09:30")
    make_slot("09:00", "09:30", slot_date=PAST)
    booking.book(clinic.alice.patient_id, held, "Consultation")

    with session_factory() as session:
        rows = available_slots(session)

    assert [r["slot_id"] for r in rows] == [open_early, open_late]
    first = rows[0]
    assert first["doctor_last_name"] == "Cuddy"
    assert first["specialty_name"] is None  # doctor without specialty still listed
    assert first["location_name"] == "Downtown Clinic"
    assert rows[1]["specialty_name"] == "Cardiology"


def test_available_slots_filters(session_factory, clinic, make_slot):
    cardio = make_slot("11:00", "11:30")
    make_slot("08:00", "08:30", staff_id=clinic.other_doctor.staff_id)

    with session_factory() as session:
        by_specialty = available_slots(session, specialty_id=clinic.specialty.specialty_id)
        elsewhere = available_slots(session, location_id=clinic.location.location_id + 100)

    assert [r["slot_id"] for r in by_specialty] == [cardio]
    assert elsewhere == []


def test_available_slots_respects_today(session_factory, make_slot):
    make_slot("09:00", "09:30")

    with session_factory() as session:
        assert available_slots(session, today=FUTURE + timedelta(days=1)) == []
        assert len(available_slots(session, today=FUTURE)) == 1


def test_upcoming_appointments_ordered_with_status(session_factory, booking, clinic, make_slot):
    later_day = booking.book(clinic.bob.patient_id, make_slot("08:00", "08:30", slot_date=FUTURE + timedelta(days=1)), "B")
    late = booking.book(clinic.alice.patient_id, make_slot("14:00", "14:30"), "Checkup", "Annual")
    early = booking.book(clinic.bob.patient_id, make_slot("09:00", "09:30"), "Consultation")
    booking.book(clinic.alice.patient_id, make_slot("09:00", "09:30", slot_date=PAST), "Old")
    booking.cancel(late.appointment_id)

    with session_factory() as session:
        rows = upcoming_appointments(session)
        alices = upcoming_appointments(session, patient_id=clinic.alice.patient_id)

    assert [r["appointment_id"] for r in rows] == [
        early.appointment_id, late.appointment_id, later_day.appointment_id,
    ]
    assert rows[1]["status_name"] == "Cancelled"
    assert rows[1]["reason_for_visit"] == "Annual"
    assert rows[0]["status_name"] == "Scheduled"
    assert rows[0]["patient_first_name"] == "Bob"
    assert [r["appointment_id"] for r in alices] == [late.appointment_id]


def test_views_are_recomputed(session_factory, booking, clinic, make_slot):
    slot_id = make_slot("09:00", "09:30")

    with session_factory() as session:
        assert len(available_slots(session, today=date.today())) == 1
    appt = booking.book(clinic.alice.patient_id, slot_id, "Consultation")
    with session_factory() as session:
        assert available_slots(session) == []
    booking.cancel(appt.appointment_id)
    with session_factory() as session:
        assert [r["slot_id"] for r in available_slots(session)] == [slot_id]
