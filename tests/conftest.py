"""Shared pytest fixtures: a fresh SQLite clinic database per test."""

from datetime import date, time, timedelta
from types import SimpleNamespace

import pytest

from clinic_booking.core.db import create_tables, get_engine, get_session_factory, transaction
from clinic_booking.services import (
    BillingService, BookingEngine, CatalogStore, LifecycleSweeper, RecordsService, SlotLedger,
)

FUTURE = date.today() + timedelta(days=7)
PAST = date.today() - timedelta(days=2)


def t(hhmm: str) -> time:
    hours, minutes = hhmm.split(":")
    return time(int(hours), int(minutes))


@pytest.fixture
def db_engine(tmp_path):
    engine = create_tables(get_engine(f"sqlite:///{tmp_path / 'clinic.db'}"))
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory(db_engine)


@pytest.fixture
def catalog(session_factory):
    return CatalogStore(session_factory)


@pytest.fixture
def booking(session_factory):
    return BookingEngine(session_factory)


@pytest.fixture
def sweeper(session_factory):
    return LifecycleSweeper(session_factory, interval_seconds=3600)


@pytest.fixture
def billing(session_factory):
    return BillingService(session_factory)


@pytest.fixture
def records(session_factory):
    return RecordsService(session_factory)


def _patient(catalog, first, last, phone, **extra):
    return catalog.add_patient(
        first_name=first,
        last_name=last,
        date_of_birth=date(1985, 3, 15),
        gender="Female",
        phone=phone,
        **extra,
    )


@pytest.fixture
def clinic(catalog):
    """One location, a cardiologist, a second doctor without specialty, two patients."""
    cardiology = catalog.add_specialty("Cardiology", "Heart and circulation")
    downtown = catalog.add_location(
        location_name="Downtown Clinic",
        address="100 Main St",
        city="Springfield",
        state="IL",
        zip_code="62701",
        phone="555-0100",
    )
    doctor = catalog.add_staff(
        first_name="Gregory",
        last_name="House",
        email="house@clinic.test",
        phone="555-0200",
        license_number="LIC-0001",
        hire_date=date(2015, 6, 1),
        specialty_id=cardiology.specialty_id,
    )
    other_doctor = catalog.add_staff(
        first_name="Lisa",
        last_name="Cuddy",
        email="cuddy@clinic.test",
        phone="555-0201",
        license_number="LIC-0002",
        hire_date=date(2012, 1, 9),
    )
    catalog.assign_staff_location(doctor.staff_id, downtown.location_id)
    catalog.assign_staff_location(other_doctor.staff_id, downtown.location_id)

    alice = _patient(catalog, "Alice", "Moreno", "555-0301", email="alice@mail.test",
                     insurance_number="INS-778")
    bob = _patient(catalog, "Bob", "Lindqvist", "555-0302", email="bob@mail.test")

    return SimpleNamespace(
        specialty=cardiology,
        location=downtown,
        doctor=doctor,
        other_doctor=other_doctor,
        alice=alice,
        bob=bob,
    )


@pytest.fixture
def make_slot(session_factory, clinic):
    """Create a slot; defaults to the cardiologist at the downtown clinic."""

    def _make(start: str, end: str, slot_date: date = FUTURE, staff_id: int | None = None) -> int:
        with transaction(session_factory) as session:
            slot = SlotLedger(session).add_slot(
                staff_id=staff_id or clinic.doctor.staff_id,
                location_id=clinic.location.location_id,
                slot_date=slot_date,
                start_time=t(start),
                end_time=t(end),
            )
            return slot.slot_id

    return _make


@pytest.fixture
def slot_available(session_factory):
    def _check(slot_id: int) -> bool:
        with session_factory() as session:
            return SlotLedger(session).is_available(slot_id)

    return _check


@pytest.fixture
def new_patient(catalog):
    counter = iter(range(1000))

    def _make(first: str = "Pat"):
        n = next(counter)
        return _patient(catalog, f"{first}{n}", "Extra", f"555-9{n:03d}")

    return _make
