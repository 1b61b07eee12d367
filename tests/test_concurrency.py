"""Racing bookings: the slot claim must let exactly one caller through."""

import threading
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import func, select

from clinic_booking.core.errors import OverlapConflict, SlotUnavailable
from clinic_booking.models import Appointment, AppointmentStatus

RACERS = 8


def _race(calls):
    """Run the callables together, released by one barrier; returns results/exceptions."""
    barrier = threading.Barrier(len(calls))

    def run(call):
        barrier.wait()
        try:
            return call()
        except Exception as e:  # collected for assertions
            return e

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(run, calls))


def test_only_one_of_many_concurrent_bookings_wins(booking, make_slot, new_patient, session_factory):
    slot_id = make_slot("09:00", "09:30")
    patients = [new_patient() for _ in range(RACERS)]

    outcomes = _race([
        (lambda p=p: booking.book(p.patient_id, slot_id, "Consultation"))
        for p in patients
    ])

    winners = [o for o in outcomes if isinstance(o, Appointment)]
    losers = [o for o in outcomes if isinstance(o, SlotUnavailable)]
    assert len(winners) == 1
    assert len(losers) == RACERS - 1

    with session_factory() as session:
        held = session.scalar(
            select(func.count()).select_from(Appointment).where(
                Appointment.slot_id == slot_id,
                Appointment.status_id != int(AppointmentStatus.CANCELLED),
            )
        )
    assert held == 1


def test_same_patient_racing_for_overlapping_slots(booking, clinic, make_slot, slot_available):
    first = make_slot("09:00", "09:30")
    second = make_slot("09:15", "09:45", staff_id=clinic.other_doctor.staff_id)

    outcomes = _race([
        lambda: booking.book(clinic.alice.patient_id, first, "Consultation"),
        lambda: booking.book(clinic.alice.patient_id, second, "Consultation"),
    ])

    assert sum(isinstance(o, Appointment) for o in outcomes) == 1
    assert sum(isinstance(o, OverlapConflict) for o in outcomes) == 1
    # the loser's slot claim was rolled back
    assert [slot_available(first), slot_available(second)].count(True) == 1


def test_cancel_and_rebook_race_never_double_books(booking, clinic, make_slot, new_patient, session_factory):
    slot_id = make_slot("09:00", "09:30")
    appt = booking.book(clinic.alice.patient_id, slot_id, "Consultation")
    others = [new_patient() for _ in range(4)]

    _race(
        [lambda: booking.cancel(appt.appointment_id)]
        + [(lambda p=p: booking.book(p.patient_id, slot_id, "Consultation")) for p in others]
    )

    with session_factory() as session:
        holders = session.scalar(
            select(func.count()).select_from(Appointment).where(
                Appointment.slot_id == slot_id,
                Appointment.status_id != int(AppointmentStatus.CANCELLED),
            )
        )
    assert holders <= 1


def test_reviving_no_show_while_booking_same_time(booking, clinic, make_slot):
    missed = booking.book(clinic.alice.patient_id, make_slot("09:00", "09:30"), "Consultation")
    booking.update_status(missed.appointment_id, AppointmentStatus.NO_SHOW)
    rival_slot = make_slot("09:15", "09:45", staff_id=clinic.other_doctor.staff_id)

    outcomes = _race([
        lambda: booking.update_status(missed.appointment_id, AppointmentStatus.SCHEDULED),
        lambda: booking.book(clinic.alice.patient_id, rival_slot, "Consultation"),
    ])

    assert sum(isinstance(o, Appointment) for o in outcomes) == 1
    assert sum(isinstance(o, OverlapConflict) for o in outcomes) == 1
    active = booking.appointments_for_patient(clinic.alice.patient_id, active_only=True)
    assert len(active) == 1
