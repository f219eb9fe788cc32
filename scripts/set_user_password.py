"""Create or update an account with a known password for local development.

This is the only way to create a super admin account.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure the project root is on sys.path so ``happyinline`` can be imported when run directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from happyinline import create_app
from happyinline.extensions import db
from happyinline.models import PROFILE_ROLES, AuthAccount, Profile

DEFAULT_NAMES = {
    "owner": "Business Owner",
    "provider": "Service Provider",
    "customer": "Customer",
    "super_admin": "Platform Admin",
}


def set_password(email: str, password: str, role: str = "super_admin") -> None:
    app = create_app()

    with app.app_context():
        profile = Profile.query.filter_by(email=email.lower()).first()
        if profile is None:
            profile = Profile(name=DEFAULT_NAMES[role], email=email.lower(), role=role)
            db.session.add(profile)
            db.session.flush()
            print(f"Created new {role} profile: {email}")
        elif profile.role != role:
            print(f"Updating role from '{profile.role}' to '{role}'")
            profile.role = role

        account = AuthAccount.query.get(profile.profile_id)
        if account is None:
            account = AuthAccount(profile_id=profile.profile_id)
            db.session.add(account)

        account.password_hash = generate_password_hash(password)
        db.session.commit()

        print(f"Password for {role} '{email}' has been set successfully.")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Set an account password for local testing.")
    parser.add_argument("email", help="Account email address")
    parser.add_argument("password", help="Plain-text password to hash and store")
    parser.add_argument(
        "--role",
        choices=PROFILE_ROLES,
        default="super_admin",
        help="Profile role (default: super_admin)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    set_password(args.email, args.password, args.role)


if __name__ == "__main__":
    main()
