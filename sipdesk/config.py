import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./sipdesk.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = "HS256"

# All cutoffs and slot windows are evaluated in this timezone
LOCAL_TIMEZONE = os.getenv("LOCAL_TIMEZONE", "Asia/Kolkata")

# Shop location used as the origin for delivery distance
SHOP_LAT = float(os.getenv("SHOP_LAT", "28.681528"))
SHOP_LNG = float(os.getenv("SHOP_LNG", "77.206712"))

# Delivery pricing fallback when no DeliverySetting row exists
DEFAULT_MAX_RANGE_KM = float(os.getenv("DEFAULT_MAX_RANGE_KM", "5"))
# Format: "<up_to_km>:<charge>,<up_to_km>:<charge>,..."
DEFAULT_DELIVERY_TIERS = os.getenv("DEFAULT_DELIVERY_TIERS", "2:10,3:25,5:35")
FREE_DELIVERY_THRESHOLD = int(os.getenv("FREE_DELIVERY_THRESHOLD", "99"))

# Same-day booking
SAME_DAY_CUTOFF_HOUR = int(os.getenv("SAME_DAY_CUTOFF_HOUR", "18"))
MIN_LEAD_HOURS = float(os.getenv("MIN_LEAD_HOURS", "0"))

# "Tomorrow" deliveries freeze at this local time today (HH:MM)
TOMORROW_EDIT_CUTOFF = os.getenv("TOMORROW_EDIT_CUTOFF", "23:59")

# FreshPlan duration bounds (days)
PLAN_MIN_DAYS = int(os.getenv("PLAN_MIN_DAYS", "3"))
PLAN_MAX_DAYS = int(os.getenv("PLAN_MAX_DAYS", "30"))

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "SipDesk <noreply@sipdesk.in>")


def parse_delivery_tiers(raw: str) -> list[dict]:
    """Parse "2:10,3:25" into [{"up_to_km": 2.0, "charge": 10}, ...]"""
    tiers = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        up_to, charge = chunk.split(":")
        tiers.append({"up_to_km": float(up_to), "charge": int(charge)})
    return tiers
