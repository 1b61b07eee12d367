from clinic_booking.models.tables import (
    Base,
    AppointmentStatus, STATUS_LABELS, INACTIVE_STATUSES, SWEEPABLE_STATUSES,
    Gender, PaymentStatus, LabOrderStatus,
    Patient, Specialty, Staff, StaffLocation, Location, TimeSlot,
    AppointmentStatusType, Appointment, MedicalRecord, Billing,
    LabTest, OrderedTest, Medication, Prescription,
)

__all__ = [
    "Base",
    "AppointmentStatus", "STATUS_LABELS", "INACTIVE_STATUSES", "SWEEPABLE_STATUSES",
    "Gender", "PaymentStatus", "LabOrderStatus",
    "Patient", "Specialty", "Staff", "StaffLocation", "Location", "TimeSlot",
    "AppointmentStatusType", "Appointment", "MedicalRecord", "Billing",
    "LabTest", "OrderedTest", "Medication", "Prescription",
]
