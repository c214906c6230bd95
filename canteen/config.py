"""
Application configuration: loaded once at startup from the environment.
"""

import os
import secrets

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./canteen.db")
SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(16)

# Daily order cleanup (wall clock, in CLEANUP_TIMEZONE)
CLEANUP_HOUR = int(os.getenv("CLEANUP_HOUR", "1"))
CLEANUP_MINUTE = int(os.getenv("CLEANUP_MINUTE", "0"))
CLEANUP_TIMEZONE = os.getenv("CLEANUP_TIMEZONE", "Asia/Kolkata")
COMPLETED_RETENTION_HOURS = int(os.getenv("COMPLETED_RETENTION_HOURS", "23"))
ENABLE_CLEANUP_SCHEDULER = os.getenv("ENABLE_CLEANUP_SCHEDULER", "1") == "1"

# How far back "my orders" and the staff board look
ACTIVE_WINDOW_HOURS = int(os.getenv("ACTIVE_WINDOW_HOURS", "24"))

SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "1") == "1"

PORT = int(os.getenv("PORT", "5000"))
DEBUG = os.getenv("DEBUG", "0") == "1"
