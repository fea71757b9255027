"""CLI commands for the meal ingestion backend."""

import argparse
import sys
from typing import Optional

from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.models.user import User
from app.services.auth import get_auth_provider
from app.services.meal_service import meal_service


def create_user(email: str, name: Optional[str] = None) -> None:
    """Create a meal owner."""
    db: Session = SessionLocal()

    try:
        # Check if email already exists
        existing = db.query(User).filter(User.email == email.lower()).first()
        if existing:
            print(f"Error: User with email '{email}' already exists.")
            sys.exit(1)

        user = User(email=email.lower(), name=name)
        db.add(user)
        db.commit()

        print(f"User created successfully: {email} ({user.id})")

    finally:
        db.close()


def issue_token(email: str, days: Optional[int] = None) -> None:
    """Issue a session token for an existing user and print it."""
    db: Session = SessionLocal()

    try:
        user = db.query(User).filter(User.email == email.lower()).first()
        if not user:
            print(f"Error: No user with email '{email}'.")
            sys.exit(1)

        max_age = days * 86400 if days else None
        token = get_auth_provider().create_session(db, user, max_age=max_age)
        print(token)

    finally:
        db.close()


def backfill_health_scores() -> None:
    """Estimate health scores for meals saved without one."""
    db: Session = SessionLocal()

    try:
        updated = meal_service.backfill_health_scores(db)
        print(f"Backfilled health score for {updated} meal(s).")

    finally:
        db.close()


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(description="Meal ingestion backend CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # create-user command
    create_user_parser = subparsers.add_parser("create-user", help="Create a user")
    create_user_parser.add_argument("--email", required=True, help="User email address")
    create_user_parser.add_argument("--name", help="Display name")

    # issue-token command
    issue_token_parser = subparsers.add_parser(
        "issue-token", help="Issue an API session token for a user"
    )
    issue_token_parser.add_argument("--email", required=True, help="User email address")
    issue_token_parser.add_argument(
        "--days", type=int, help="Token lifetime in days (default from settings)"
    )

    # backfill-health-scores command
    subparsers.add_parser(
        "backfill-health-scores",
        help="Estimate health scores for legacy meals that have none",
    )

    args = parser.parse_args(argv)

    if args.command == "create-user":
        create_user(args.email, args.name)
    elif args.command == "issue-token":
        issue_token(args.email, args.days)
    elif args.command == "backfill-health-scores":
        backfill_health_scores()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
