"""
Load catalog CSV files (specialties, locations, staff, patients, lab tests,
medications) into the clinic database.
- Every file is optional; missing ones are skipped.
- All files go in one transaction: either everything loads or nothing does.
"""

from __future__ import annotations
import logging
from pathlib import Path
import pandas as pd
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from clinic_booking.core.logging_setup import setup_logging
from clinic_booking.core.db import create_tables, get_engine, get_session_factory, transaction
from clinic_booking.models import (
    Gender, LabTest, Location, Medication, Patient, Specialty, Staff, StaffLocation,
)
from clinic_booking.core.config import (
    CATALOG_DIR, LAB_TESTS_FILE, LOCATIONS_FILE, MEDICATIONS_FILE, PATIENTS_FILE,
    SPECIALTIES_FILE, STAFF_FILE, STAFF_LOCATIONS_FILE,
)

log = logging.getLogger(__name__)

def _to_bool(val):
    if pd.isna(val):
        return None
    s = str(val).strip().lower()
    if s in {"true", "1", "yes"}:  return True
    if s in {"false", "0", "no"}:  return False
    return None

def _nan_to_none_dicts(df: pd.DataFrame, cols: list[str]) -> list[dict]:
    """Convert a DataFrame subset to list-of-dicts and replace NaN/NaT with None."""
    out = []
    for rec in df[cols].to_dict("records"):
        out.append({k: (None if pd.isna(v) else v) for k, v in rec.items()})
    return out

def _read(directory: Path, file_name: str) -> pd.DataFrame | None:
    path = Path(directory) / file_name
    if not path.exists():
        log.info("%s: not present, skipping", file_name)
        return None
    df = pd.read_csv(path, dtype=str)
    df.columns = df.columns.str.strip()
    for col in df.columns:
        df[col] = df[col].str.strip()
    log.info("%s: reading %d rows", file_name, len(df))
    return df

def _ints(df: pd.DataFrame, cols) -> None:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").astype("Int64")

def _dates(df: pd.DataFrame, cols) -> None:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], errors="coerce").dt.date

def _insert(session: Session, model, df: pd.DataFrame, allowed: list[str]) -> int:
    cols = [c for c in df.columns if c in allowed]
    # blanks are left out so column defaults (is_active, ...) still apply
    records = [
        {k: (v.item() if hasattr(v, "item") else v) for k, v in rec.items() if v is not None}
        for rec in _nan_to_none_dicts(df, cols)
    ]
    session.add_all([model(**rec) for rec in records])
    session.flush()
    log.info("%s: inserted %d", model.__tablename__, len(records))
    return len(records)

def load_specialties(session: Session, directory: Path) -> int:
    df = _read(directory, SPECIALTIES_FILE)
    if df is None:
        return 0
    _ints(df, ["specialty_id"])
    return _insert(session, Specialty, df, ["specialty_id", "specialty_name", "description"])

def load_locations(session: Session, directory: Path) -> int:
    df = _read(directory, LOCATIONS_FILE)
    if df is None:
        return 0
    _ints(df, ["location_id"])
    if "is_active" in df.columns:
        df["is_active"] = df["is_active"].apply(_to_bool)
    allowed = [
        "location_id", "location_name", "address", "city", "state", "zip_code",
        "phone", "email", "opening_hours", "is_active",
    ]
    return _insert(session, Location, df, allowed)

def load_staff(session: Session, directory: Path) -> int:
    df = _read(directory, STAFF_FILE)
    if df is None:
        return 0
    _ints(df, ["staff_id", "specialty_id"])
    _dates(df, ["hire_date"])
    if "is_active" in df.columns:
        df["is_active"] = df["is_active"].apply(_to_bool)
    allowed = [
        "staff_id", "first_name", "last_name", "specialty_id", "email", "phone",
        "license_number", "hire_date", "is_active",
    ]
    return _insert(session, Staff, df, allowed)

def load_staff_locations(session: Session, directory: Path) -> int:
    df = _read(directory, STAFF_LOCATIONS_FILE)
    if df is None:
        return 0
    _ints(df, ["staff_id", "location_id"])
    df = df.drop_duplicates(subset=["staff_id", "location_id"])
    return _insert(session, StaffLocation, df, ["staff_id", "location_id"])

def load_patients(session: Session, directory: Path) -> int:
    df = _read(directory, PATIENTS_FILE)
    if df is None:
        return 0
    _ints(df, ["patient_id"])
    _dates(df, ["date_of_birth"])
    if "gender" in df.columns:
        df["gender"] = df["gender"].str.title().map(lambda g: Gender(g) if g in Gender._value2member_map_ else None)
    allowed = [
        "patient_id", "first_name", "last_name", "date_of_birth", "gender", "email",
        "phone", "address", "insurance_number", "medical_history",
    ]
    return _insert(session, Patient, df, allowed)

def load_lab_tests(session: Session, directory: Path) -> int:
    df = _read(directory, LAB_TESTS_FILE)
    if df is None:
        return 0
    _ints(df, ["test_id"])
    if "standard_cost" in df.columns:
        df["standard_cost"] = pd.to_numeric(df["standard_cost"], errors="coerce").round(2)
    allowed = ["test_id", "test_name", "description", "standard_cost", "preparation_instructions"]
    return _insert(session, LabTest, df, allowed)

def load_medications(session: Session, directory: Path) -> int:
    df = _read(directory, MEDICATIONS_FILE)
    if df is None:
        return 0
    _ints(df, ["medication_id"])
    allowed = [
        "medication_id", "medication_name", "generic_name", "description", "dosage_form",
        "standard_dose", "contraindications", "side_effects",
    ]
    return _insert(session, Medication, df, allowed)

# parents before children
LOADERS = [
    ("specialties", load_specialties),
    ("locations", load_locations),
    ("staff", load_staff),
    ("staff_locations", load_staff_locations),
    ("patients", load_patients),
    ("lab_tests", load_lab_tests),
    ("medications", load_medications),
]

# tables whose CSVs carry explicit serial ids
SERIAL_TABLES = {
    "specialties": Specialty,
    "locations": Location,
    "staff": Staff,
    "patients": Patient,
    "lab_tests": LabTest,
    "medications": Medication,
}


def _uses_sequences(session: Session) -> bool:
    return session.get_bind().dialect.name == "postgresql"


def sequence_reset(model):
    """setval() moving the id sequence past the highest loaded id."""
    pk = model.__table__.primary_key.columns.values()[0]
    return select(func.setval(
        func.pg_get_serial_sequence(model.__tablename__, pk.name),
        select(func.max(pk)).scalar_subquery(),
    ))


def load_catalog(directory: str | Path = CATALOG_DIR, session_factory=None) -> dict:
    if session_factory is None:
        session_factory = get_session_factory(create_tables(get_engine()))
    directory = Path(directory)
    log.info("Starting catalog load from %s", directory)

    stats = {}
    with transaction(session_factory) as session:
        for name, loader in LOADERS:
            stats[name] = loader(session, directory)
        if _uses_sequences(session):
            for name, model in SERIAL_TABLES.items():
                if stats[name]:
                    session.execute(sequence_reset(model))
    log.info("Catalog load committed: %s", stats)
    return stats

if __name__ == "__main__":
    setup_logging()
    load_catalog()
