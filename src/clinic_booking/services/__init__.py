from clinic_booking.services.billing import BillingService, RecordsService
from clinic_booking.services.booking import BookingEngine
from clinic_booking.services.catalog import CatalogStore
from clinic_booking.services.slot_ledger import SlotLedger
from clinic_booking.services.sweeper import LifecycleSweeper

__all__ = [
    "BillingService", "RecordsService", "BookingEngine",
    "CatalogStore", "SlotLedger", "LifecycleSweeper",
]
