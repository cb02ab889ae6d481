import re
import secrets
from datetime import datetime

from .config import INVITE_CODE_ALPHABET, INVITE_CODE_LENGTH

TEAM_CODE_NAME_LENGTH = 16


def generate_secure_code(length: int = INVITE_CODE_LENGTH) -> str:
    """Generate a random invite code, uniform over the unambiguous alphabet."""
    return ''.join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def normalize_invite_code(raw: str) -> str:
    return raw.strip().upper()


def derive_team_code(name: str, created_at: datetime) -> str:
    """Display code shown next to a team name, e.g. "Eagles" -> "EAGLES2025"."""
    letters = re.sub(r'[^A-Za-z0-9]', '', name).upper()[:TEAM_CODE_NAME_LENGTH]
    return f"{letters or 'TEAM'}{created_at.year}"
