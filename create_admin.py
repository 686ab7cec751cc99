"""
Create (or reset the password of) an admin user for the /admin panel.

Usage: python create_admin.py <username> <password>
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models.admin_user import AdminUser
from app.utils.auth import hash_password


def create_admin(db, username: str, password: str) -> AdminUser:
    admin = db.query(AdminUser).filter(AdminUser.username == username).first()
    if admin is None:
        admin = AdminUser(username=username, hashed_password=hash_password(password))
        db.add(admin)
    else:
        admin.hashed_password = hash_password(password)
    db.commit()
    db.refresh(admin)
    return admin


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or update an admin user")
    parser.add_argument("username")
    parser.add_argument("password")
    args = parser.parse_args(argv)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        create_admin(db, args.username, args.password)
    finally:
        db.close()
    print(f"✅ Admin '{args.username}' saved with hashed password.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
