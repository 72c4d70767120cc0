#!/usr/bin/env python3
"""
ApplyTrack - Admin Promotion CLI

Grant or revoke admin rights (needed for /api/admin routes). Users are
provisioned on their first authenticated request, so sign in once first.

Usage:
    python scripts/promote_admin.py user@email.com          # promote
    python scripts/promote_admin.py user@email.com --demote  # demote
"""
import sys
import os

# Add project root to path so we can import applytrack modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from applytrack.database import get_resilient_session
from applytrack.auth.models import User


def set_admin(email: str, is_admin: bool = True) -> bool:
    """Returns False when no user has that email."""
    with get_resilient_session() as db:
        user = db.query(User).filter(User.email == email.lower()).first()
        if not user:
            return False
        user.is_admin = is_admin
    return True


if __name__ == "__main__":
    if len(sys.argv) not in (2, 3):
        print("Usage: python scripts/promote_admin.py <email> [--demote]")
        sys.exit(1)

    demote = "--demote" in sys.argv
    email = sys.argv[1]
    if not set_admin(email, is_admin=not demote):
        print(f"Error: No user found with email '{email}'")
        sys.exit(1)
    print(f"{'Demoted' if demote else 'Promoted'} {email}")
