import logging
from contextlib import contextmanager
from pathlib import Path
from sqlalchemy import create_engine, event, inspect, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from clinic_booking.core.config import DATABASE_URL
from clinic_booking.core.errors import (
    BookingRejected, DuplicateRecord, ReferentialViolation, StorageError,
)
from clinic_booking.models.tables import Base, AppointmentStatusType, STATUS_LABELS

log = logging.getLogger(__name__)

def _configure_sqlite(engine) -> None:
    """Enforce foreign keys and take the write lock at BEGIN, so concurrent
    booking transactions queue up instead of failing on lock upgrade."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record):
        # let SQLAlchemy emit BEGIN itself
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_engine(url: str | None = None):
    url = url or DATABASE_URL
    try:
        parsed = make_url(url)
        if parsed.get_backend_name() == "sqlite":
            if parsed.database and parsed.database != ":memory:":
                Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(
                url, echo=False, future=True,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
            _configure_sqlite(engine)
            return engine
        return create_engine(url, echo=False, future=True, pool_pre_ping=True)
    except SQLAlchemyError as e:
        log.error("Failed to create engine: %s", e)
        raise StorageError(f"Failed to create engine: {e}") from e


def get_session_factory(engine) -> sessionmaker:
    # objects handed back to callers stay readable after commit
    return sessionmaker(bind=engine, expire_on_commit=False)


def seed_statuses(engine) -> int:
    """Insert any missing appointment_status rows (idempotent)."""
    with Session(engine) as session:
        existing = set(session.scalars(select(AppointmentStatusType.status_id)))
        missing = [
            AppointmentStatusType(status_id=int(status), status_name=name, description=desc)
            for status, (name, desc) in STATUS_LABELS.items()
            if int(status) not in existing
        ]
        if missing:
            session.add_all(missing)
            session.commit()
            log.info("Seeded %d appointment statuses", len(missing))
    return len(missing)


def create_tables(engine=None):
    """Create missing tables and seed lookup rows (idempotent)."""
    engine = engine or get_engine()
    insp = inspect(engine)
    existing = set(insp.get_table_names())
    expected = set(Base.metadata.tables.keys())

    if expected.issubset(existing):
        log.info("All tables exist. Skipping creation.")
    else:
        missing = sorted(expected - existing)
        log.info("Creating tables: %s", ", ".join(missing))
        Base.metadata.create_all(engine)
        log.info("Tables created.")

    seed_statuses(engine)
    return engine


def _is_unique_violation(e: IntegrityError) -> bool:
    # 23505: PostgreSQL unique_violation
    if getattr(e.orig, "pgcode", None) == "23505":
        return True
    return "UNIQUE constraint failed" in str(e.orig)


@contextmanager
def transaction(session_factory):
    """One unit of work: commit on success, roll back on any error.

    Domain rejections pass through unchanged. Unique-key clashes become
    DuplicateRecord, other integrity failures ReferentialViolation; any other
    database failure becomes StorageError.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except BookingRejected:
        session.rollback()
        raise
    except IntegrityError as e:
        session.rollback()
        if _is_unique_violation(e):
            log.warning("Duplicate key; rolled back: %s", e.orig)
            raise DuplicateRecord(f"Duplicate value for a unique field: {e.orig}") from e
        log.warning("Integrity violation; rolled back: %s", e.orig)
        raise ReferentialViolation(f"Integrity constraint violated: {e.orig}") from e
    except SQLAlchemyError as e:
        session.rollback()
        log.error("Database failure; rolled back: %s", e, exc_info=True)
        raise StorageError(str(e)) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
