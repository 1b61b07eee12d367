"""
Run the lifecycle sweeper.
Run with:
    python -m clinic_booking.scripts.run_sweeper          # keep running on the interval
    python -m clinic_booking.scripts.run_sweeper --once   # single pass, then exit
"""
import logging
import sys
import time
from clinic_booking.core.db import create_tables, get_engine, get_session_factory
from clinic_booking.core.logging_setup import setup_logging
from clinic_booking.services.sweeper import LifecycleSweeper

if __name__ == "__main__":
    setup_logging()
    log = logging.getLogger(__name__)

    sweeper = LifecycleSweeper(get_session_factory(create_tables(get_engine())))
    if "--once" in sys.argv[1:]:
        log.info("Sweep complete: %d appointment(s) marked No Show", sweeper.sweep())
        sys.exit(0)

    sweeper.start()
    try:
        while True:
            time.sleep(60)
    except (KeyboardInterrupt, SystemExit):
        sweeper.stop()
