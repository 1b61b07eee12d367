"""
Catalog store: patients, staff, specialties, locations, lab tests, medications.

Plain data access; the only rule enforced is that references point at rows
that exist.
"""

from __future__ import annotations
import logging
from datetime import date
from sqlalchemy import func, or_, select
from sqlalchemy.orm import sessionmaker
from clinic_booking.core.db import transaction
from clinic_booking.core.errors import ReferentialViolation, ValidationError
from clinic_booking.models import (
    Appointment, AppointmentStatus, Gender, LabTest, Location, Medication, Patient,
    Specialty, Staff, StaffLocation,
)
from clinic_booking.services.billing import to_money
from clinic_booking.services.slot_ledger import SlotLedger

log = logging.getLogger(__name__)

class CatalogStore:

    # demographic fields a caller may change after registration
    PATIENT_FIELDS = [
        "first_name", "last_name", "date_of_birth", "gender", "email", "phone",
        "address", "insurance_number", "medical_history",
    ]

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # Patients

    def add_patient(
        self,
        first_name: str,
        last_name: str,
        date_of_birth: date,
        gender: Gender | str,
        phone: str,
        email: str | None = None,
        address: str | None = None,
        insurance_number: str | None = None,
        medical_history: str | None = None,
    ) -> Patient:
        patient = Patient(
            first_name=first_name,
            last_name=last_name,
            date_of_birth=date_of_birth,
            gender=_gender(gender),
            phone=phone,
            email=email,
            address=address,
            insurance_number=insurance_number,
            medical_history=medical_history,
        )
        with transaction(self.session_factory) as session:
            session.add(patient)
            session.flush()
        log.info("Registered patient %s (%s %s)", patient.patient_id, first_name, last_name)
        return patient

    def get_patient(self, patient_id: int) -> Patient | None:
        with transaction(self.session_factory) as session:
            return session.get(Patient, patient_id)

    def update_patient(self, patient_id: int, updates: dict) -> Patient:
        unknown = set(updates) - set(self.PATIENT_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update patient fields: {sorted(unknown)}")

        with transaction(self.session_factory) as session:
            patient = session.get(Patient, patient_id)
            if patient is None:
                raise ReferentialViolation(f"Patient {patient_id} not found")
            for field, value in updates.items():
                if field == "gender":
                    value = _gender(value)
                setattr(patient, field, value)
            session.flush()
        log.info("Updated patient %s: %s", patient_id, ", ".join(sorted(updates)))
        return patient

    def search_patients(self, term: str, limit: int = 20) -> list[Patient]:
        """Case-insensitive substring match on name, email, phone and insurance number."""
        pattern = f"%{term.strip().lower()}%"
        columns = [
            Patient.first_name, Patient.last_name, Patient.email,
            Patient.phone, Patient.insurance_number,
        ]
        with transaction(self.session_factory) as session:
            return list(session.scalars(
                select(Patient)
                .where(or_(*(func.lower(c).like(pattern) for c in columns)))
                .order_by(Patient.last_name, Patient.first_name)
                .limit(limit)
            ))

    def delete_patient(self, patient_id: int) -> None:
        """Delete the patient and, via cascade, their appointments, records and bills.

        Slots still held by the patient's appointments are released first.
        """
        with transaction(self.session_factory) as session:
            patient = session.get(Patient, patient_id)
            if patient is None:
                raise ReferentialViolation(f"Patient {patient_id} not found")
            held_slots = list(session.scalars(
                select(Appointment.slot_id).where(
                    Appointment.patient_id == patient_id,
                    Appointment.status_id != int(AppointmentStatus.CANCELLED),
                )
            ))
            ledger = SlotLedger(session)
            for slot_id in held_slots:
                ledger.mark_available(slot_id)
            session.delete(patient)
        log.info("Deleted patient %s; released %d slot(s)", patient_id, len(held_slots))

    # Staff, specialties, locations

    def add_specialty(self, specialty_name: str, description: str | None = None) -> Specialty:
        specialty = Specialty(specialty_name=specialty_name, description=description)
        with transaction(self.session_factory) as session:
            session.add(specialty)
            session.flush()
        return specialty

    def add_staff(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        license_number: str,
        hire_date: date,
        specialty_id: int | None = None,
        is_active: bool = True,
    ) -> Staff:
        with transaction(self.session_factory) as session:
            if specialty_id is not None and session.get(Specialty, specialty_id) is None:
                raise ReferentialViolation(f"Specialty {specialty_id} not found")
            staff = Staff(
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone=phone,
                license_number=license_number,
                hire_date=hire_date,
                specialty_id=specialty_id,
                is_active=is_active,
            )
            session.add(staff)
            session.flush()
        log.info("Added staff %s (%s %s)", staff.staff_id, first_name, last_name)
        return staff

    def get_staff(self, staff_id: int) -> Staff | None:
        with transaction(self.session_factory) as session:
            return session.get(Staff, staff_id)

    def set_staff_active(self, staff_id: int, is_active: bool) -> Staff:
        with transaction(self.session_factory) as session:
            staff = session.get(Staff, staff_id)
            if staff is None:
                raise ReferentialViolation(f"Staff {staff_id} not found")
            staff.is_active = is_active
        return staff

    def add_location(
        self,
        location_name: str,
        address: str,
        city: str,
        state: str,
        zip_code: str,
        phone: str,
        email: str | None = None,
        opening_hours: str | None = None,
        is_active: bool = True,
    ) -> Location:
        location = Location(
            location_name=location_name,
            address=address,
            city=city,
            state=state,
            zip_code=zip_code,
            phone=phone,
            email=email,
            opening_hours=opening_hours,
            is_active=is_active,
        )
        with transaction(self.session_factory) as session:
            session.add(location)
            session.flush()
        return location

    def set_location_active(self, location_id: int, is_active: bool) -> Location:
        with transaction(self.session_factory) as session:
            location = session.get(Location, location_id)
            if location is None:
                raise ReferentialViolation(f"Location {location_id} not found")
            location.is_active = is_active
        return location

    def assign_staff_location(self, staff_id: int, location_id: int) -> None:
        with transaction(self.session_factory) as session:
            if session.get(Staff, staff_id) is None:
                raise ReferentialViolation(f"Staff {staff_id} not found")
            if session.get(Location, location_id) is None:
                raise ReferentialViolation(f"Location {location_id} not found")
            if session.get(StaffLocation, (staff_id, location_id)) is None:
                session.add(StaffLocation(staff_id=staff_id, location_id=location_id))

    def locations_for_staff(self, staff_id: int) -> list[Location]:
        with transaction(self.session_factory) as session:
            return list(session.scalars(
                select(Location)
                .join(StaffLocation, StaffLocation.location_id == Location.location_id)
                .where(StaffLocation.staff_id == staff_id)
                .order_by(Location.location_name)
            ))

    # Lab tests, medications

    def add_lab_test(
        self,
        test_name: str,
        standard_cost,
        description: str | None = None,
        preparation_instructions: str | None = None,
    ) -> LabTest:
        test = LabTest(
            test_name=test_name,
            standard_cost=to_money(standard_cost, "standard_cost"),
            description=description,
            preparation_instructions=preparation_instructions,
        )
        with transaction(self.session_factory) as session:
            session.add(test)
            session.flush()
        return test

    def add_medication(self, medication_name: str, **details) -> Medication:
        medication = Medication(medication_name=medication_name, **details)
        with transaction(self.session_factory) as session:
            session.add(medication)
            session.flush()
        return medication


def _gender(value) -> Gender:
    try:
        return Gender(value)
    except ValueError as e:
        raise ValidationError(f"Unknown gender: {value!r}") from e
