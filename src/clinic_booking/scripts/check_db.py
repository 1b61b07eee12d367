"""
Health check for the clinic database: connection, missing tables, row counts
and the appointment status mix.
Run with: python -m clinic_booking.scripts.check_db
"""
import sys
from sqlalchemy import func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from clinic_booking.core.db import get_engine
from clinic_booking.core.errors import StorageError
from clinic_booking.models import Appointment, AppointmentStatusType, Base, TimeSlot


def report(engine) -> list[str]:
    """Lines describing the database; raises SQLAlchemyError if unreachable."""
    lines = [f"Connected to {engine.url.render_as_string(hide_password=True)}"]
    present = set(inspect(engine).get_table_names())
    missing = sorted(set(Base.metadata.tables) - present)
    if missing:
        lines.append(f"Missing tables: {', '.join(missing)} (run clinic_booking.scripts.init_db)")

    with engine.connect() as conn:
        for name, table in Base.metadata.tables.items():
            if name in present:
                count = conn.execute(select(func.count()).select_from(table)).scalar_one()
                lines.append(f"  {name:<20} {count:>8}")

        if {"appointments", "appointment_status"} <= present:
            lines.append("Appointments by status:")
            rows = conn.execute(
                select(AppointmentStatusType.status_name, func.count(Appointment.appointment_id))
                .outerjoin(Appointment, Appointment.status_id == AppointmentStatusType.status_id)
                .group_by(AppointmentStatusType.status_id, AppointmentStatusType.status_name)
                .order_by(AppointmentStatusType.status_id)
            )
            lines.extend(f"  {status:<20} {count:>8}" for status, count in rows)

        if "time_slots" in present:
            free = conn.execute(
                select(func.count()).select_from(TimeSlot).where(TimeSlot.is_available.is_(True))
            ).scalar_one()
            lines.append(f"Open slots: {free}")
    return lines


def main() -> int:
    try:
        lines = report(get_engine())
    except (SQLAlchemyError, StorageError) as e:
        print(f"Database check FAILED: {e}")
        return 1
    print("\n".join(lines))
    return 0


if __name__ == "__main__":
    sys.exit(main())
