"""
Lifecycle sweeper - rolls past, unattended appointments to No Show.

Can be run as:
- an APScheduler background job inside a long-lived process (start/stop)
- a one-off call to sweep() from cron or a test
"""

from __future__ import annotations
import logging
from datetime import datetime
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import sessionmaker
from clinic_booking.core.config import SWEEP_INTERVAL_SECONDS
from clinic_booking.core.db import transaction
from clinic_booking.core.errors import ClinicBookingError
from clinic_booking.models import Appointment, AppointmentStatus, SWEEPABLE_STATUSES, TimeSlot

log = logging.getLogger(__name__)

JOB_ID = "sweep_past_appointments"


class LifecycleSweeper:
    """Marks Scheduled/Confirmed appointments whose slot has ended as No Show."""

    def __init__(self, session_factory: sessionmaker, interval_seconds: int = SWEEP_INTERVAL_SECONDS):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.scheduler = BackgroundScheduler()
        self._stopped = False

    def sweep(self, now: datetime | None = None) -> int:
        """Run one pass; returns how many appointments changed.

        A single UPDATE carries the status filter, so an appointment cancelled
        by a transaction that commits first is left alone, and a second pass
        finds nothing to do. Slots stay held.
        """
        now = now or datetime.now()
        today, clock = now.date(), now.time()

        ended_slots = select(TimeSlot.slot_id).where(
            or_(
                TimeSlot.slot_date < today,
                and_(TimeSlot.slot_date == today, TimeSlot.end_time < clock),
            )
        )
        stmt = (
            update(Appointment)
            .where(
                Appointment.status_id.in_([int(s) for s in SWEEPABLE_STATUSES]),
                Appointment.slot_id.in_(ended_slots),
            )
            .values(status_id=int(AppointmentStatus.NO_SHOW), last_updated=now)
            .execution_options(synchronize_session=False)
        )

        with transaction(self.session_factory) as session:
            changed = session.execute(stmt).rowcount

        if changed:
            log.info("Sweep at %s: %d appointment(s) marked No Show", now.isoformat(timespec="seconds"), changed)
        else:
            log.debug("Sweep at %s: nothing to update", now.isoformat(timespec="seconds"))
        return changed

    def _scheduled_sweep(self) -> None:
        try:
            self.sweep()
        except ClinicBookingError as e:
            # next interval tries again
            log.error("Scheduled sweep failed: %s", e, exc_info=True)

    def start(self, run_now: bool = True) -> None:
        """Start the background scheduler."""
        if self.scheduler.running:
            return
        if self._stopped:
            # a shut-down scheduler keeps a dead executor; start over with a new one
            self.scheduler = BackgroundScheduler()
            self._stopped = False
        job_kwargs = {"next_run_time": datetime.now()} if run_now else {}
        self.scheduler.add_job(
            self._scheduled_sweep,
            IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            name="Sweep Past Appointments",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_kwargs,
        )
        self.scheduler.start()
        log.info("Lifecycle sweeper started (every %ds)", self.interval_seconds)

    def stop(self, wait: bool = True) -> None:
        """Stop the background scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            self._stopped = True
            log.info("Lifecycle sweeper stopped")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def get_jobs(self) -> list[dict]:
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        ]
