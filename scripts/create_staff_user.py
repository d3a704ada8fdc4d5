#!/usr/bin/env python3
"""
Create a staff account and print an access token for it.

Usage:
    python scripts/create_staff_user.py admin@clinic.test admin --name "Clinic Admin"
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.security import create_access_token  # noqa: E402
from app.database import AsyncSessionLocal, engine  # noqa: E402
from app.schemas.users import UserRole  # noqa: E402
from app.services.user_service import UserService  # noqa: E402


async def create_staff_user(email: str, role: UserRole, full_name: str | None) -> str:
    """Create the user if missing and return a signed access token."""
    service = UserService()
    async with AsyncSessionLocal() as session:
        user = await service.get_user_by_email(session, email)
        if user is None:
            user = await service.create_user(session, email, role, full_name)
            print(f"✓ Created {role.value} {email} ({user['id']})")
        else:
            print(f"• {email} already exists as {user['role']}")

    await engine.dispose()
    return create_access_token({"sub": str(user["id"]), "role": user["role"]})


def main() -> int:
    """Parse arguments and create the account."""
    parser = argparse.ArgumentParser(description="Create a clinic staff account")
    parser.add_argument("email")
    parser.add_argument("role", choices=[role.value for role in UserRole])
    parser.add_argument("--name", dest="full_name")
    args = parser.parse_args()

    token = asyncio.run(create_staff_user(args.email, UserRole(args.role), args.full_name))
    print(f"Access token:\n{token}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
