"""
Seed the local database with the staff accounts.

Usage:
  python scripts/seed_users.py

This script is idempotent: running it multiple times will upsert the same
users by username. Existing passwords are kept unless --reset-passwords is given.
"""

import argparse

from fieldhub.db import Base, engine, session_scope
from fieldhub.models.models import User
from fieldhub.auth.security import get_password_hash


STAFF = [
    # username, password, name, email, phone, role
    ("admin", "admin123", "Admin User", "admin@lkrconstruction.example", "(337) 555-0100", "admin"),
    ("owner", "owner123", "Business Owner", "owner@lkrconstruction.example", "(337) 555-0101", "owner"),
    ("technician", "tech123", "Tom Technician", "tech@lkrconstruction.example", "(337) 555-0102", "technician"),
]


def ensure_user(session, username: str, password: str, name: str, email: str, phone: str, role: str,
                reset_password: bool = False) -> User:
    user = session.query(User).filter(User.username == username).first()
    if user:
        user.name = name
        user.email = email
        user.phone = phone
        user.role = role
        user.is_active = True
        if reset_password or not user.password_hash:
            user.password_hash = get_password_hash(password)
        session.add(user)
        session.flush()
        return user
    user = User(
        username=username,
        password_hash=get_password_hash(password),
        name=name,
        email=email,
        phone=phone,
        role=role,
        is_active=True,
    )
    session.add(user)
    session.flush()
    return user


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or update the staff accounts")
    parser.add_argument("--reset-passwords", action="store_true", help="Reset passwords to the defaults")
    args = parser.parse_args()

    # Ensure tables exist (safe for SQLite dev)
    Base.metadata.create_all(bind=engine)

    with session_scope() as session:
        for username, password, name, email, phone, role in STAFF:
            user = ensure_user(session, username, password, name, email, phone, role, args.reset_passwords)
            print(f"[seed] {user.role:<10} {user.username} (id={user.id})")
    print("Seed completed.")


if __name__ == "__main__":
    main()
