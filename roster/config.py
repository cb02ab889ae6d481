import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR}/roster.db")

# Security
SESSION_COOKIE_NAME = "roster_session"
SESSION_EXPIRE_DAYS = int(os.getenv("SESSION_EXPIRE_DAYS", "7"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Invite codes (O, 0, I and 1 are left out so codes survive being read aloud)
INVITE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH = 8
INVITE_CODE_MAX_ATTEMPTS = 10

# Join rate limiting
JOIN_RATE_LIMIT_WINDOW_MINUTES = int(os.getenv("JOIN_RATE_LIMIT_WINDOW_MINUTES", "5"))
JOIN_RATE_LIMIT_MAX_ATTEMPTS = int(os.getenv("JOIN_RATE_LIMIT_MAX_ATTEMPTS", "5"))
