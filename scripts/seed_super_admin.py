#!/usr/bin/env python3
"""
Create the super admin account.

Usage:
    python scripts/seed_super_admin.py                      # SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD
    python scripts/seed_super_admin.py admin@example.com s3cret
"""
import sys
sys.path.insert(0, '.')

from app.core.config import get_settings
from app.db.mongodb import init_mongo_indexes
from app.services.accounts import seed_super_admin


def main():
    settings = get_settings()
    if len(sys.argv) == 3:
        email, password = sys.argv[1], sys.argv[2]
    else:
        email, password = settings.super_admin_email, settings.super_admin_password

    if not email or not password:
        print("❌ Provide an email and password, or set SUPER_ADMIN_EMAIL and SUPER_ADMIN_PASSWORD")
        sys.exit(1)

    init_mongo_indexes()
    if seed_super_admin(email, password):
        print(f"✅ Super admin {email} created")
    else:
        print(f"⚠️  A user with email {email} already exists")


if __name__ == "__main__":
    main()
