"""Tests for BillingService and RecordsService."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from clinic_booking.core.errors import (
    AppointmentNotFound, InvalidStatusChange, ReferentialViolation, ValidationError,
)
from clinic_booking.models import AppointmentStatus, Billing, LabOrderStatus, PaymentStatus


@pytest.fixture
def visit(booking, clinic, make_slot):
    return booking.book(clinic.alice.patient_id, make_slot("09:00", "09:30"), "Consultation")


class TestBilling:

    def test_patient_responsibility_is_derived(self, billing, visit):
        bill = billing.create_bill(visit.appointment_id, amount="100.00", insurance_coverage="40.00")

        assert bill.patient_responsibility == Decimal("60.00")
        assert bill.patient_id == visit.patient_id
        assert bill.payment_status == PaymentStatus.PENDING

    def test_responsibility_recomputes_after_edit(self, billing, visit):
        bill = billing.create_bill(visit.appointment_id, amount=100, insurance_coverage=40)

        updated = billing.update_bill(bill.bill_id, insurance_coverage="100.00")

        assert updated.patient_responsibility == Decimal("0.00")
        assert billing.get_bill(bill.bill_id).patient_responsibility == Decimal("0.00")

    def test_responsibility_usable_in_queries(self, billing, visit, session_factory):
        bill = billing.create_bill(visit.appointment_id, amount="250.50", insurance_coverage="200.25")

        with session_factory() as session:
            owed = session.scalar(
                select(Billing.patient_responsibility).where(Billing.bill_id == bill.bill_id)
            )
        assert Decimal(owed).quantize(Decimal("0.01")) == Decimal("50.25")

    def test_default_dates(self, billing, visit):
        bill = billing.create_bill(visit.appointment_id, amount=80)

        assert bill.issue_date == date.today()
        assert bill.due_date == date.today() + timedelta(days=30)
        assert bill.insurance_coverage == Decimal("0.00")

    def test_negative_amount_rejected(self, billing, visit):
        with pytest.raises(ValidationError):
            billing.create_bill(visit.appointment_id, amount=-1)
        with pytest.raises(ValidationError):
            billing.create_bill(visit.appointment_id, amount=10, insurance_coverage="abc")

    def test_unknown_appointment(self, billing):
        with pytest.raises(AppointmentNotFound):
            billing.create_bill(999, amount=10)

    def test_any_payment_status_can_be_set(self, billing, visit):
        bill = billing.create_bill(visit.appointment_id, amount=100)

        for status in ("Insurance Processing", PaymentStatus.REJECTED, "Partially Paid", "Pending"):
            assert billing.set_payment_status(bill.bill_id, status).payment_status == PaymentStatus(status)

        paid = billing.set_payment_status(bill.bill_id, PaymentStatus.PAID)
        assert paid.payment_date == date.today()

    def test_unknown_payment_status(self, billing, visit):
        bill = billing.create_bill(visit.appointment_id, amount=100)
        with pytest.raises(ValidationError):
            billing.set_payment_status(bill.bill_id, "Waived")

    def test_outstanding_balance_skips_paid_bills(self, billing, visit, clinic):
        open_bill = billing.create_bill(visit.appointment_id, amount=100, insurance_coverage=40)
        paid_bill = billing.create_bill(visit.appointment_id, amount=50)
        billing.set_payment_status(paid_bill.bill_id, PaymentStatus.PAID)

        assert billing.outstanding_balance(clinic.alice.patient_id) == Decimal("60.00")
        assert [b.bill_id for b in billing.bills_for_patient(clinic.alice.patient_id)] == [
            open_bill.bill_id, paid_bill.bill_id,
        ]


class TestRecords:

    def test_complete_visit_writes_record(self, records, booking, visit, clinic):
        record = records.complete_visit(
            visit.appointment_id, clinic.doctor.staff_id,
            diagnosis="Stable angina", treatment="Lifestyle changes",
        )

        assert record.patient_id == clinic.alice.patient_id
        assert booking.get(visit.appointment_id).status == AppointmentStatus.COMPLETED
        assert [r.record_id for r in records.records_for_appointment(visit.appointment_id)] == [record.record_id]

    def test_cannot_complete_cancelled_visit(self, records, booking, visit, clinic):
        booking.cancel(visit.appointment_id)
        with pytest.raises(InvalidStatusChange):
            records.complete_visit(visit.appointment_id, clinic.doctor.staff_id)

    def test_record_requires_known_staff(self, records, visit):
        with pytest.raises(ReferentialViolation):
            records.create_medical_record(visit.appointment_id, staff_id=4040, diagnosis="Flu")

    def test_prescription_flow(self, records, catalog, visit, clinic):
        record = records.create_medical_record(visit.appointment_id, clinic.doctor.staff_id, diagnosis="Hypertension")
        med = catalog.add_medication("Lisinopril", generic_name="lisinopril", standard_dose="10 mg")

        rx = records.prescribe(record.record_id, med.medication_id, "10 mg", "daily", "30 days",
                               prescribed_by=clinic.doctor.staff_id)

        assert rx.prescription_id is not None
        with pytest.raises(ReferentialViolation):
            records.prescribe(record.record_id, 555, "1", "daily", "1 day", clinic.doctor.staff_id)

    def test_lab_order_lifecycle(self, records, catalog, visit, clinic):
        panel = catalog.add_lab_test("Lipid Panel", standard_cost="45.00")

        order = records.order_test(visit.appointment_id, panel.test_id, clinic.doctor.staff_id)
        assert order.status == LabOrderStatus.ORDERED

        scheduled = records.set_test_status(order.order_id, "Scheduled")
        assert scheduled.status == LabOrderStatus.SCHEDULED

        done = records.record_test_result(order.order_id, "LDL 130 mg/dL")
        assert done.status == LabOrderStatus.COMPLETED
        assert done.result_date is not None

    def test_lab_order_with_date_starts_scheduled(self, records, catalog, visit, clinic):
        panel = catalog.add_lab_test("CBC", standard_cost=20)
        order = records.order_test(visit.appointment_id, panel.test_id, clinic.doctor.staff_id,
                                   scheduled_date=date.today() + timedelta(days=3))
        assert order.status == LabOrderStatus.SCHEDULED
