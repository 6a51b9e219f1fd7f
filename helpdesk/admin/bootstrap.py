from __future__ import annotations

import argparse
import asyncio
import getpass

from helpdesk.core.database import AsyncSessionLocal, init_db
from helpdesk.core.logging import setup_logging
from helpdesk.models.profile import ROLES
from helpdesk.services.provisioning import DuplicateAccountError, register_user


async def _create_account(
    email: str, password: str, full_name: str, role: str, department: str | None
) -> None:
    await init_db()
    async with AsyncSessionLocal() as session:
        profile = await register_user(
            session,
            full_name=full_name,
            email=email,
            password=password,
            role=role,
            department=department,
        )

    print(f"Created account: {email} (id={profile.id}, role={profile.role})")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create an account and its profile (e.g. the first admin)."
    )
    parser.add_argument("--email", required=True, help="Login e-mail.")
    parser.add_argument("--name", required=True, help="Full name shown on tickets.")
    parser.add_argument("--password", help="Password (prompted if omitted).")
    parser.add_argument("--role", default="admin", choices=list(ROLES))
    parser.add_argument("--department", help="Optional department label.")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    setup_logging()
    email = args.email.strip().lower()
    password = args.password or getpass.getpass("Password: ")
    if not password.strip():
        raise SystemExit("Password is required")

    try:
        asyncio.run(
            _create_account(
                email=email,
                password=password,
                full_name=args.name.strip(),
                role=args.role,
                department=args.department,
            )
        )
    except DuplicateAccountError as exc:
        raise SystemExit(str(exc)) from exc


if __name__ == "__main__":
    main()
