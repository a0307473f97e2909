#!/usr/bin/env python3
"""Seed demo subscribers and alerts for local runs.

The web application normally owns users and alerts; this script creates a
few so the jobs have something to match against during development.

Usage:
    python scripts/seed_alerts.py
    python scripts/seed_alerts.py --database sqlite:///./data/dev.db
"""

import argparse
import os
import secrets
import sys

from dotenv import load_dotenv

from housing_alerts.config.environment import DEFAULT_DATABASE_URL
from housing_alerts.domain.models import Alert
from housing_alerts.persistence.database import close_database, get_session, init_database
from housing_alerts.persistence.exceptions import DataIntegrityError
from housing_alerts.persistence.repositories import AlertRepository, UserRepository
from housing_alerts.utils.timestamps import utc_now

SAMPLE_ALERTS = [
    {
        "email": "john.doe@example.com",
        "neighborhoods": ["Upper West Side", "Harlem"],
        "max_price": 4000,
        "bedrooms": 1,
        "pet_friendly": True,
        "commute_destination": "Times Square, New York, NY",
        "max_commute_minutes": 45,
    },
    {
        "email": "jane.smith@example.com",
        "neighborhoods": ["Williamsburg", "Greenpoint", "Bushwick"],
        "min_price": 2000,
        "max_price": 3500,
        "bedrooms": 2,
    },
    {
        "email": "sarah.johnson@example.com",
        "neighborhoods": ["Astoria", "Long Island City"],
        "min_price": 1500,
        "max_price": 2800,
        "bedrooms": 0,
    },
]


def seed(database_url: str) -> int:
    init_database(database_url)
    created = 0
    now = utc_now()
    try:
        for sample in SAMPLE_ALERTS:
            fields = dict(sample)
            email = fields.pop("email")
            try:
                with get_session() as session:
                    user = UserRepository(session).create(
                        email, created_at=now, unsubscribe_token=secrets.token_urlsafe(24)
                    )
                    AlertRepository(session).create(
                        Alert(id=0, user_id=user.id, **fields), created_at=now
                    )
            except DataIntegrityError:
                print(f"  - {email} already exists, skipped")
                continue
            created += 1
            print(f"  + {email}: {', '.join(fields['neighborhoods'])}")
    finally:
        close_database()
    return created


def main() -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Seed demo users and alerts")
    parser.add_argument(
        "--database",
        default=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        help="SQLAlchemy database URL (default: DATABASE_URL or the local SQLite file)",
    )
    args = parser.parse_args()

    print(f"Seeding {args.database}")
    created = seed(args.database)
    print(f"Created {created} alerts")
    return 0


if __name__ == "__main__":
    sys.exit(main())
