#!/usr/bin/env python3
"""
Admin User Seed Script
Creates the first ReclamAssur administrator (later admins register with an
invitation code).

Usage:
    python -m scripts.seed_admin <email> <password> [first_name] [last_name]

Example:
    python -m scripts.seed_admin admin@reclamassur.fr securepassword123 Marie Dupont
"""
import sys
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reclamassur.auth import hash_password
from reclamassur.database import SessionLocal, init_db
from reclamassur.models.db_models import AppRole, ProfileDB
from reclamassur.services.user_service import UserService, get_user_role


def create_admin_user(email: str, password: str, first_name: str = None, last_name: str = None) -> bool:
    """Create an admin profile, or upgrade an existing profile to admin."""
    init_db()

    db: Session = SessionLocal()
    try:
        email = email.lower()
        existing = db.query(ProfileDB).filter(ProfileDB.email == email).first()

        if existing:
            if get_user_role(db, existing.id) == AppRole.ADMIN:
                print(f"Error: '{email}' is already an admin.")
                return False
            UserService(db).set_role(existing.id, AppRole.ADMIN)
            db.commit()
            print(f"Upgraded existing user '{email}' to admin role.")
            return True

        admin_user = ProfileDB(
            id=str(uuid4()),
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
        )
        db.add(admin_user)
        db.flush()
        UserService(db).set_role(admin_user.id, AppRole.ADMIN)
        db.commit()

        print("Admin user created successfully!")
        print(f"  Email: {email}")
        print("  Role: admin")
        return True

    except SQLAlchemyError as e:
        print(f"Error creating admin user: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    if len(sys.argv) not in (3, 4, 5):
        print(__doc__)
        sys.exit(1)

    email = sys.argv[1]
    password = sys.argv[2]
    first_name = sys.argv[3] if len(sys.argv) > 3 else None
    last_name = sys.argv[4] if len(sys.argv) > 4 else None

    # Basic validation
    if len(password) < 8:
        print("Error: Password must be at least 8 characters.")
        sys.exit(1)

    if "@" not in email:
        print("Error: Invalid email format.")
        sys.exit(1)

    success = create_admin_user(email, password, first_name, last_name)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
