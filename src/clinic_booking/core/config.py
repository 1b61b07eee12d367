from pathlib import Path
import os
from dotenv import load_dotenv

load_dotenv()

# project paths
BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent
DATA_DIR    = BASE_DIR / "data"
CATALOG_DIR = DATA_DIR / "catalog"
LOGS_DIR    = DATA_DIR / "logs"

# catalog input files (all optional)
SPECIALTIES_FILE     = "specialties.csv"
LOCATIONS_FILE       = "locations.csv"
STAFF_FILE           = "staff.csv"
STAFF_LOCATIONS_FILE = "staff_locations.csv"
PATIENTS_FILE        = "patients.csv"
LAB_TESTS_FILE       = "lab_tests.csv"
MEDICATIONS_FILE     = "medications.csv"

# scheduling / billing
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "86400"))
BILL_DUE_DAYS = int(os.getenv("BILL_DUE_DAYS", "30"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Database
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME")


def resolve_database_url() -> str:
    """Explicit URL first, then the DB_* variables, then a local SQLite file."""
    url = os.getenv("CLINIC_DATABASE_URL")
    if url:
        return url
    if all([DB_USER, DB_PASSWORD, DB_NAME]):
        return f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    return f"sqlite:///{DATA_DIR / 'clinic_booking.db'}"


DATABASE_URL = resolve_database_url()
