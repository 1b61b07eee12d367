"""
ORM models for the clinic booking database.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, Time, Integer, Numeric, Text,
    Enum, ForeignKey, Index, UniqueConstraint, CheckConstraint,
)

class Base(DeclarativeBase):
    pass


class AppointmentStatus(enum.IntEnum):
    """Status ids as seeded into the ``appointment_status`` lookup table."""
    SCHEDULED   = 1
    CONFIRMED   = 2
    CHECKED_IN  = 3
    IN_PROGRESS = 4
    COMPLETED   = 5
    CANCELLED   = 6
    NO_SHOW     = 7

    @property
    def label(self) -> str:
        return STATUS_LABELS[self][0]


STATUS_LABELS = {
    AppointmentStatus.SCHEDULED:   ("Scheduled", "Appointment has been booked"),
    AppointmentStatus.CONFIRMED:   ("Confirmed", "Patient has confirmed attendance"),
    AppointmentStatus.CHECKED_IN:  ("Checked In", "Patient has arrived and checked in"),
    AppointmentStatus.IN_PROGRESS: ("In Progress", "Patient is currently seeing the doctor"),
    AppointmentStatus.COMPLETED:   ("Completed", "Appointment has been completed"),
    AppointmentStatus.CANCELLED:   ("Cancelled", "Appointment was cancelled"),
    AppointmentStatus.NO_SHOW:     ("No Show", "Patient did not attend the appointment"),
}

# not counted when checking a patient's schedule for overlaps
INACTIVE_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)
# the sweeper only rolls these forward
SWEEPABLE_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)


class Gender(str, enum.Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PAID = "Paid"
    PARTIALLY_PAID = "Partially Paid"
    INSURANCE_PROCESSING = "Insurance Processing"
    REJECTED = "Rejected"


class LabOrderStatus(str, enum.Enum):
    ORDERED = "Ordered"
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


def _values(enum_cls):
    return [member.value for member in enum_cls]


class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = (
        Index("idx_patient_name", "last_name", "first_name"),
        Index("idx_dob", "date_of_birth"),
    )

    patient_id        = Column(Integer, primary_key=True, autoincrement=True)
    first_name        = Column(String(50), nullable=False)
    last_name         = Column(String(50), nullable=False)
    date_of_birth     = Column(Date, nullable=False)
    gender            = Column(Enum(Gender, name="gender", values_callable=_values), nullable=False)
    email             = Column(String(100), unique=True)
    phone             = Column(String(20), nullable=False)
    address           = Column(String(255))
    insurance_number  = Column(String(50))
    registration_date = Column(DateTime, default=datetime.now)
    medical_history   = Column(Text)

    appointments = relationship("Appointment", back_populates="patient", passive_deletes=True)


class Specialty(Base):
    __tablename__ = "specialties"

    specialty_id   = Column(Integer, primary_key=True, autoincrement=True)
    specialty_name = Column(String(100), nullable=False, unique=True)
    description    = Column(Text)


class StaffLocation(Base):
    __tablename__ = "staff_locations"

    staff_id    = Column(Integer, ForeignKey("medical_staff.staff_id", ondelete="CASCADE"), primary_key=True)
    location_id = Column(Integer, ForeignKey("clinic_locations.location_id", ondelete="CASCADE"), primary_key=True)


class Staff(Base):
    __tablename__ = "medical_staff"
    __table_args__ = (Index("idx_staff_name", "last_name", "first_name"),)

    staff_id       = Column(Integer, primary_key=True, autoincrement=True)
    first_name     = Column(String(50), nullable=False)
    last_name      = Column(String(50), nullable=False)
    specialty_id   = Column(Integer, ForeignKey("specialties.specialty_id", ondelete="SET NULL"))
    email          = Column(String(100), unique=True, nullable=False)
    phone          = Column(String(20), nullable=False)
    license_number = Column(String(50), unique=True, nullable=False)
    hire_date      = Column(Date, nullable=False)
    is_active      = Column(Boolean, default=True, nullable=False)

    specialty = relationship("Specialty")
    locations = relationship("Location", secondary="staff_locations", back_populates="staff", viewonly=True)


class Location(Base):
    __tablename__ = "clinic_locations"

    location_id   = Column(Integer, primary_key=True, autoincrement=True)
    location_name = Column(String(100), nullable=False)
    address       = Column(String(255), nullable=False)
    city          = Column(String(50), nullable=False)
    state         = Column(String(50), nullable=False)
    zip_code      = Column(String(20), nullable=False)
    phone         = Column(String(20), nullable=False)
    email         = Column(String(100))
    opening_hours = Column(String(255))
    is_active     = Column(Boolean, default=True, nullable=False)

    staff = relationship("Staff", secondary="staff_locations", back_populates="locations", viewonly=True)


class TimeSlot(Base):
    __tablename__ = "time_slots"
    __table_args__ = (
        UniqueConstraint("staff_id", "location_id", "slot_date", "start_time", name="unique_slot"),
        CheckConstraint("start_time < end_time", name="ck_slot_time_range"),
        Index("idx_availability", "is_available", "slot_date"),
    )

    slot_id      = Column(Integer, primary_key=True, autoincrement=True)
    staff_id     = Column(Integer, ForeignKey("medical_staff.staff_id", ondelete="CASCADE"), nullable=False)
    location_id  = Column(Integer, ForeignKey("clinic_locations.location_id", ondelete="CASCADE"), nullable=False)
    slot_date    = Column(Date, nullable=False)
    start_time   = Column(Time, nullable=False)
    end_time     = Column(Time, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)

    staff    = relationship("Staff")
    location = relationship("Location")


class AppointmentStatusType(Base):
    __tablename__ = "appointment_status"

    status_id   = Column(Integer, primary_key=True, autoincrement=True)
    status_name = Column(String(50), nullable=False, unique=True)
    description = Column(String(255))


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (Index("idx_appointment_date", "created_at"),)

    appointment_id   = Column(Integer, primary_key=True, autoincrement=True)
    patient_id       = Column(Integer, ForeignKey("patients.patient_id", ondelete="CASCADE"), nullable=False)
    slot_id          = Column(Integer, ForeignKey("time_slots.slot_id", ondelete="CASCADE"), nullable=False)
    status_id        = Column(Integer, ForeignKey("appointment_status.status_id", ondelete="RESTRICT"),
                              nullable=False, default=int(AppointmentStatus.SCHEDULED))
    appointment_type = Column(String(50), nullable=False)
    reason_for_visit = Column(Text)
    notes            = Column(Text)
    created_at       = Column(DateTime, default=datetime.now)
    last_updated     = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    patient = relationship("Patient", back_populates="appointments")
    slot    = relationship("TimeSlot")

    @property
    def status(self) -> AppointmentStatus:
        return AppointmentStatus(self.status_id)


class MedicalRecord(Base):
    __tablename__ = "medical_records"

    record_id      = Column(Integer, primary_key=True, autoincrement=True)
    patient_id     = Column(Integer, ForeignKey("patients.patient_id", ondelete="CASCADE"), nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.appointment_id", ondelete="CASCADE"), nullable=False)
    staff_id       = Column(Integer, ForeignKey("medical_staff.staff_id", ondelete="RESTRICT"), nullable=False)
    diagnosis      = Column(Text)
    treatment      = Column(Text)
    prescription   = Column(Text)
    notes          = Column(Text)
    created_at     = Column(DateTime, default=datetime.now)


class Billing(Base):
    __tablename__ = "billing"
    __table_args__ = (Index("idx_payment_status", "payment_status"),)

    bill_id            = Column(Integer, primary_key=True, autoincrement=True)
    appointment_id     = Column(Integer, ForeignKey("appointments.appointment_id", ondelete="CASCADE"), nullable=False)
    patient_id         = Column(Integer, ForeignKey("patients.patient_id", ondelete="CASCADE"), nullable=False)
    amount             = Column(Numeric(10, 2), nullable=False)
    insurance_coverage = Column(Numeric(10, 2), default=Decimal("0.00"), nullable=False)
    payment_status     = Column(Enum(PaymentStatus, name="payment_status", values_callable=_values),
                                default=PaymentStatus.PENDING, nullable=False)
    issue_date         = Column(Date, nullable=False)
    due_date           = Column(Date, nullable=False)
    payment_date       = Column(Date)

    @hybrid_property
    def patient_responsibility(self):
        """Always amount - insurance_coverage; there is no column to drift out of sync."""
        coverage = self.insurance_coverage if self.insurance_coverage is not None else Decimal("0.00")
        return self.amount - coverage

    @patient_responsibility.expression
    def patient_responsibility(cls):
        return cls.amount - cls.insurance_coverage


class LabTest(Base):
    __tablename__ = "lab_tests"

    test_id                  = Column(Integer, primary_key=True, autoincrement=True)
    test_name                = Column(String(100), nullable=False)
    description              = Column(Text)
    standard_cost            = Column(Numeric(10, 2), nullable=False)
    preparation_instructions = Column(Text)


class OrderedTest(Base):
    __tablename__ = "ordered_tests"

    order_id       = Column(Integer, primary_key=True, autoincrement=True)
    appointment_id = Column(Integer, ForeignKey("appointments.appointment_id", ondelete="CASCADE"), nullable=False)
    test_id        = Column(Integer, ForeignKey("lab_tests.test_id", ondelete="RESTRICT"), nullable=False)
    ordered_by     = Column(Integer, ForeignKey("medical_staff.staff_id", ondelete="RESTRICT"), nullable=False)
    order_date     = Column(DateTime, default=datetime.now)
    scheduled_date = Column(Date)
    results        = Column(Text)
    result_date    = Column(DateTime)
    status         = Column(Enum(LabOrderStatus, name="ordered_test_status", values_callable=_values),
                            default=LabOrderStatus.ORDERED, nullable=False)


class Medication(Base):
    __tablename__ = "medications"

    medication_id     = Column(Integer, primary_key=True, autoincrement=True)
    medication_name   = Column(String(100), nullable=False)
    generic_name      = Column(String(100))
    description       = Column(Text)
    dosage_form       = Column(String(50))
    standard_dose     = Column(String(50))
    contraindications = Column(Text)
    side_effects      = Column(Text)


class Prescription(Base):
    __tablename__ = "prescriptions"

    prescription_id = Column(Integer, primary_key=True, autoincrement=True)
    record_id       = Column(Integer, ForeignKey("medical_records.record_id", ondelete="CASCADE"), nullable=False)
    medication_id   = Column(Integer, ForeignKey("medications.medication_id", ondelete="RESTRICT"), nullable=False)
    dosage          = Column(String(50), nullable=False)
    frequency       = Column(String(50), nullable=False)
    duration        = Column(String(50), nullable=False)
    instructions    = Column(Text)
    prescribed_by   = Column(Integer, ForeignKey("medical_staff.staff_id", ondelete="RESTRICT"), nullable=False)
    prescribed_date = Column(DateTime, default=datetime.now)
