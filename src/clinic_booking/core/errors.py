"""
Error taxonomy for the booking engine.

Domain rejections (``BookingRejected`` and subclasses) are expected outcomes of a
request. ``StorageError`` means the database itself failed and is fatal to the
caller's request.
"""


class ClinicBookingError(Exception):
    """Base class for every error raised by clinic_booking."""


class BookingRejected(ClinicBookingError):
    """A request was refused by a domain rule; nothing was written."""


class SlotUnavailable(BookingRejected):
    def __init__(self, slot_id):
        super().__init__(f"Slot {slot_id} is no longer available")
        self.slot_id = slot_id


class OverlapConflict(BookingRejected):
    def __init__(self, patient_id, slot_id, conflicting_appointment_id=None):
        super().__init__(
            f"Patient {patient_id} already has an appointment scheduled at this time "
            f"(slot {slot_id})"
        )
        self.patient_id = patient_id
        self.slot_id = slot_id
        self.conflicting_appointment_id = conflicting_appointment_id


class ReferentialViolation(BookingRejected):
    """A referenced row (patient, staff, slot, catalog item...) does not exist."""


class AppointmentNotFound(BookingRejected):
    def __init__(self, appointment_id):
        super().__init__(f"Appointment {appointment_id} not found")
        self.appointment_id = appointment_id


class DuplicateRecord(BookingRejected):
    """A row with the same unique key (email, license number...) already exists."""


class DuplicateSlot(DuplicateRecord):
    pass


class InvalidStatusChange(BookingRejected):
    pass


class ValidationError(BookingRejected):
    pass


class StorageError(ClinicBookingError):
    """Infrastructure failure: database unreachable, locked, or misbehaving."""
