"""Utility script to populate the user directory for local runs."""

from __future__ import annotations

import argparse

from sqlalchemy.exc import SQLAlchemyError

from app.domain.entities import PREFERENCE_FLAGS, NotificationPreferences, User
from app.infrastructure.database import SessionLocal, initialize_database
from app.infrastructure.repositories import (
    NotificationPreferencesRepository,
    UserRepository,
)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for seeding."""

    parser = argparse.ArgumentParser(
        description="Create demo users (and optionally preference records) for the notification service.",
    )
    parser.add_argument("--count", type=int, default=10, help="Number of users to create (default: 10)")
    parser.add_argument(
        "--email-domain",
        default="example.com",
        help="Domain used for the generated e-mail addresses (default: example.com)",
    )
    parser.add_argument(
        "--disable",
        action="append",
        default=[],
        choices=PREFERENCE_FLAGS,
        metavar="FLAG",
        help="Preference flag to switch off for every seeded user; may be repeated.",
    )
    return parser.parse_args()


def main() -> None:
    """Create the requested users using the provided command line arguments."""

    args = parse_args()
    if args.count < 1:
        raise SystemExit("--count must be a positive integer")

    initialize_database()

    session = SessionLocal()
    try:
        users = UserRepository(session)
        preferences = NotificationPreferencesRepository(session)
        for index in range(1, args.count + 1):
            user = users.create(
                User(id=None, name=f"User {index}", email=f"user{index}@{args.email_domain}")
            )
            if args.disable:
                flags = {flag: False for flag in args.disable}
                preferences.save(NotificationPreferences(user_id=user.id, **flags))
    except SQLAlchemyError as exc:
        session.rollback()
        raise SystemExit(f"Could not store the seeded users: {exc}") from exc
    else:
        print(f"Created {args.count} users")
    finally:
        session.close()


if __name__ == "__main__":
    main()
