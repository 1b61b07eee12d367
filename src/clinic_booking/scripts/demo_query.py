"""
Demo queries - print the available-slots and upcoming-appointments views.
Run: python -m clinic_booking.scripts.demo_query
"""
from sqlalchemy.orm import Session
from clinic_booking.core.db import get_engine
from clinic_booking.services.views import available_slots, upcoming_appointments

def main():
    engine = get_engine()
    print("Clinic Booking - Current Schedule\n")
    with Session(engine) as session:

        print("\n1. Available Slots:")
        for row in available_slots(session):
            print(f"   #{row['slot_id']} {row['slot_date']} {row['start_time']:%H:%M}-{row['end_time']:%H:%M} "
                  f"Dr. {row['doctor_last_name']} ({row['specialty_name'] or 'General'}) "
                  f"@ {row['location_name']}")

        print("\n2. Upcoming Appointments:")
        for row in upcoming_appointments(session):
            print(f"   #{row['appointment_id']} {row['slot_date']} {row['start_time']:%H:%M} "
                  f"{row['patient_first_name']} {row['patient_last_name']} with "
                  f"Dr. {row['doctor_last_name']} [{row['status_name']}] {row['appointment_type']}")

if __name__ == "__main__":
    main()
