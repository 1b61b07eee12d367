"""
Billing and visit records attached to an existing appointment.
"""

from __future__ import annotations
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker
from clinic_booking.core.config import BILL_DUE_DAYS
from clinic_booking.core.db import transaction
from clinic_booking.core.errors import (
    AppointmentNotFound, InvalidStatusChange, ReferentialViolation, ValidationError,
)
from clinic_booking.models import (
    Appointment, AppointmentStatus, Billing, LabOrderStatus, LabTest, MedicalRecord,
    Medication, OrderedTest, PaymentStatus, Prescription, Staff,
)

log = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value, field: str = "amount") -> Decimal:
    """Coerce to a non-negative two-decimal Decimal."""
    try:
        money = Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field} is not a valid amount: {value!r}") from e
    if money < 0:
        raise ValidationError(f"{field} cannot be negative: {money}")
    return money


def _require(session, model, key, label: str):
    obj = session.get(model, key)
    if obj is None:
        raise ReferentialViolation(f"{label} {key} not found")
    return obj


def _appointment(session, appointment_id: int) -> Appointment:
    appointment = session.get(Appointment, appointment_id)
    if appointment is None:
        raise AppointmentNotFound(appointment_id)
    return appointment


class BillingService:

    def __init__(self, session_factory: sessionmaker, due_days: int = BILL_DUE_DAYS):
        self.session_factory = session_factory
        self.due_days = due_days

    def create_bill(
        self,
        appointment_id: int,
        amount,
        insurance_coverage=0,
        issue_date: date | None = None,
        due_date: date | None = None,
    ) -> Billing:
        amount = to_money(amount)
        coverage = to_money(insurance_coverage, "insurance_coverage")
        issue_date = issue_date or date.today()
        due_date = due_date or issue_date + timedelta(days=self.due_days)
        if due_date < issue_date:
            raise ValidationError(f"due_date {due_date} is before issue_date {issue_date}")

        with transaction(self.session_factory) as session:
            appointment = _appointment(session, appointment_id)
            bill = Billing(
                appointment_id=appointment_id,
                patient_id=appointment.patient_id,
                amount=amount,
                insurance_coverage=coverage,
                payment_status=PaymentStatus.PENDING,
                issue_date=issue_date,
                due_date=due_date,
            )
            session.add(bill)
            session.flush()

        log.info("Bill %s for appointment %s: amount=%s coverage=%s patient owes %s",
                 bill.bill_id, appointment_id, amount, coverage, bill.patient_responsibility)
        return bill

    def update_bill(self, bill_id: int, amount=None, insurance_coverage=None) -> Billing:
        with transaction(self.session_factory) as session:
            bill = _require(session, Billing, bill_id, "Bill")
            if amount is not None:
                bill.amount = to_money(amount)
            if insurance_coverage is not None:
                bill.insurance_coverage = to_money(insurance_coverage, "insurance_coverage")
            session.flush()

        log.info("Bill %s updated: patient owes %s", bill_id, bill.patient_responsibility)
        return bill

    def set_payment_status(
        self,
        bill_id: int,
        status: PaymentStatus | str,
        payment_date: date | None = None,
    ) -> Billing:
        try:
            status = PaymentStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown payment status: {status!r}") from e

        with transaction(self.session_factory) as session:
            bill = _require(session, Billing, bill_id, "Bill")
            bill.payment_status = status
            if payment_date is not None:
                bill.payment_date = payment_date
            elif status == PaymentStatus.PAID and bill.payment_date is None:
                bill.payment_date = date.today()
            session.flush()

        log.info("Bill %s payment status -> %s", bill_id, status.value)
        return bill

    def get_bill(self, bill_id: int) -> Billing:
        with transaction(self.session_factory) as session:
            return _require(session, Billing, bill_id, "Bill")

    def bills_for_patient(self, patient_id: int) -> list[Billing]:
        with transaction(self.session_factory) as session:
            return list(session.scalars(
                select(Billing)
                .where(Billing.patient_id == patient_id)
                .order_by(Billing.issue_date, Billing.bill_id)
            ))

    def outstanding_balance(self, patient_id: int) -> Decimal:
        """Sum of patient responsibility on every bill not yet Paid."""
        with transaction(self.session_factory) as session:
            bills = session.scalars(
                select(Billing).where(
                    Billing.patient_id == patient_id,
                    Billing.payment_status != PaymentStatus.PAID,
                )
            )
            return sum((b.patient_responsibility for b in bills), Decimal("0.00"))


class RecordsService:
    """Medical records, prescriptions and lab orders."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_medical_record(
        self,
        appointment_id: int,
        staff_id: int,
        diagnosis: str | None = None,
        treatment: str | None = None,
        prescription: str | None = None,
        notes: str | None = None,
    ) -> MedicalRecord:
        with transaction(self.session_factory) as session:
            record = self._add_record(session, appointment_id, staff_id,
                                      diagnosis, treatment, prescription, notes)
        log.info("Medical record %s written for appointment %s", record.record_id, appointment_id)
        return record

    def complete_visit(
        self,
        appointment_id: int,
        staff_id: int,
        diagnosis: str | None = None,
        treatment: str | None = None,
        prescription: str | None = None,
        notes: str | None = None,
    ) -> MedicalRecord:
        """Mark the appointment Completed and write its record together."""
        with transaction(self.session_factory) as session:
            appointment = _appointment(session, appointment_id)
            if appointment.status_id == AppointmentStatus.CANCELLED:
                raise InvalidStatusChange(f"Appointment {appointment_id} was cancelled")
            appointment.status_id = int(AppointmentStatus.COMPLETED)
            record = self._add_record(session, appointment_id, staff_id,
                                      diagnosis, treatment, prescription, notes)
        log.info("Visit completed: appointment %s, record %s", appointment_id, record.record_id)
        return record

    def _add_record(self, session, appointment_id, staff_id, diagnosis, treatment, prescription, notes):
        appointment = _appointment(session, appointment_id)
        _require(session, Staff, staff_id, "Staff")
        record = MedicalRecord(
            patient_id=appointment.patient_id,
            appointment_id=appointment_id,
            staff_id=staff_id,
            diagnosis=diagnosis,
            treatment=treatment,
            prescription=prescription,
            notes=notes,
        )
        session.add(record)
        session.flush()
        return record

    def records_for_appointment(self, appointment_id: int) -> list[MedicalRecord]:
        with transaction(self.session_factory) as session:
            return list(session.scalars(
                select(MedicalRecord)
                .where(MedicalRecord.appointment_id == appointment_id)
                .order_by(MedicalRecord.record_id)
            ))

    def prescribe(
        self,
        record_id: int,
        medication_id: int,
        dosage: str,
        frequency: str,
        duration: str,
        prescribed_by: int,
        instructions: str | None = None,
    ) -> Prescription:
        with transaction(self.session_factory) as session:
            _require(session, MedicalRecord, record_id, "Medical record")
            _require(session, Medication, medication_id, "Medication")
            _require(session, Staff, prescribed_by, "Staff")
            rx = Prescription(
                record_id=record_id,
                medication_id=medication_id,
                dosage=dosage,
                frequency=frequency,
                duration=duration,
                instructions=instructions,
                prescribed_by=prescribed_by,
            )
            session.add(rx)
            session.flush()
        log.info("Prescription %s on record %s (medication %s)", rx.prescription_id, record_id, medication_id)
        return rx

    def order_test(
        self,
        appointment_id: int,
        test_id: int,
        ordered_by: int,
        scheduled_date: date | None = None,
    ) -> OrderedTest:
        with transaction(self.session_factory) as session:
            _appointment(session, appointment_id)
            _require(session, LabTest, test_id, "Lab test")
            _require(session, Staff, ordered_by, "Staff")
            order = OrderedTest(
                appointment_id=appointment_id,
                test_id=test_id,
                ordered_by=ordered_by,
                scheduled_date=scheduled_date,
                status=LabOrderStatus.SCHEDULED if scheduled_date else LabOrderStatus.ORDERED,
            )
            session.add(order)
            session.flush()
        log.info("Lab order %s: test %s for appointment %s", order.order_id, test_id, appointment_id)
        return order

    def set_test_status(self, order_id: int, status: LabOrderStatus | str) -> OrderedTest:
        try:
            status = LabOrderStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown lab order status: {status!r}") from e
        with transaction(self.session_factory) as session:
            order = _require(session, OrderedTest, order_id, "Lab order")
            order.status = status
            session.flush()
        return order

    def record_test_result(self, order_id: int, results: str, result_date: datetime | None = None) -> OrderedTest:
        with transaction(self.session_factory) as session:
            order = _require(session, OrderedTest, order_id, "Lab order")
            order.results = results
            order.result_date = result_date or datetime.now()
            order.status = LabOrderStatus.COMPLETED
            session.flush()
        log.info("Lab order %s completed", order_id)
        return order
