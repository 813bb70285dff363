import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./amc.db")

# Contract numbering: AMC-<year>-<4-digit sequence>
CONTRACT_NUMBER_PREFIX = os.getenv("CONTRACT_NUMBER_PREFIX", "AMC")
# "sequence" uses the atomic counter table; "probe" reads the max number and retries on collision
CONTRACT_NUMBER_STRATEGY = os.getenv("CONTRACT_NUMBER_STRATEGY", "sequence").lower()
CONTRACT_NUMBER_MAX_ATTEMPTS = int(os.getenv("CONTRACT_NUMBER_MAX_ATTEMPTS", "10"))

# Renewal sets the next visit this many days after the new start date
RENEWAL_NEXT_VISIT_DAYS = int(os.getenv("RENEWAL_NEXT_VISIT_DAYS", "30"))

# Window used by the expiring-contracts lookup
EXPIRING_SOON_DAYS = int(os.getenv("EXPIRING_SOON_DAYS", "30"))

# Reject status moves outside the transition table (set to false to allow any manual correction)
ENFORCE_STATUS_TRANSITIONS = os.getenv("ENFORCE_STATUS_TRANSITIONS", "true").lower() == "true"

# Technician references are opaque ids issued by the user registry
TECHNICIAN_REF_PATTERN = os.getenv("TECHNICIAN_REF_PATTERN", r"^[A-Za-z0-9][A-Za-z0-9_.:-]{0,63}$")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Frontend origins allowed by CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000",
).split(",")
