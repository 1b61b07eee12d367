"""
Create the clinic tables, seed appointment statuses and optionally load catalog CSVs.
Run with:
    python -m clinic_booking.scripts.init_db [catalog_dir]
"""
import logging
import sys
from clinic_booking.core.db import create_tables, get_engine, get_session_factory
from clinic_booking.core.logging_setup import setup_logging
from clinic_booking.load.load_catalog import load_catalog

if __name__ == "__main__":
    setup_logging()
    log = logging.getLogger(__name__)

    log.info("Initialising clinic booking database")
    engine = create_tables(get_engine())
    if len(sys.argv) > 1:
        stats = load_catalog(sys.argv[1], get_session_factory(engine))
        log.info("Catalog loaded: %s", stats)
