#!/usr/bin/env python3
"""
Migration: Backfill Legacy Teams
--------------------------------
- Gives every team without an invite code a fresh unique one
- Creates the owner membership for teams that only store the legacy owner id

Usage: Run from project root directory
    python migrations/001_backfill_legacy_teams.py
"""

import sys
import os

# Add parent directory to path so we can import roster modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sqlmodel import Session
from roster.database import engine, create_db_and_tables
from roster.services.teams import backfill_legacy_teams


def run_migration():
    print("\n" + "="*60)
    print("BACKFILL LEGACY TEAMS MIGRATION")
    print("="*60)

    create_db_and_tables()
    with Session(engine) as db:
        for line in backfill_legacy_teams(db):
            print(f"  {line}")

    print("\n" + "="*60)
    print("MIGRATION COMPLETE")
    print("="*60)


if __name__ == "__main__":
    try:
        run_migration()
    except Exception as e:
        print(f"\n❌ Migration failed: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
