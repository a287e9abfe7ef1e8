#!/usr/bin/env python3
"""Create the first ADMIN account if none exists yet."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from docvault.core.config import get_settings
from docvault.services.repository import get_repository
from docvault.services.users import UserService


async def bootstrap(*, email: str, first_name: str, last_name: str, password: str) -> dict[str, Any] | None:
    settings = get_settings()
    repository = get_repository()
    try:
        users = UserService(repository, bcrypt_rounds=settings.bcrypt_rounds)
        return await users.ensure_admin(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password=password,
        )
    finally:
        await repository.close()


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Create the default ADMIN user when no admin exists.")
    parser.add_argument("--email", default=settings.admin_email, help="Admin email (DV_ADMIN_EMAIL)")
    parser.add_argument("--first-name", default=settings.admin_first_name, help="Admin first name")
    parser.add_argument("--last-name", default=settings.admin_last_name, help="Admin last name")
    parser.add_argument(
        "--password",
        default=settings.admin_password,
        help="Admin password (DV_ADMIN_PASSWORD); required",
    )
    args = parser.parse_args()

    if not args.password:
        parser.error("an admin password is required (--password or DV_ADMIN_PASSWORD)")

    if not settings.database_url:
        parser.error("DV_DATABASE_URL is not set; refusing to create an admin that would not be persisted")

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")

    user = asyncio.run(
        bootstrap(
            email=args.email,
            first_name=args.first_name,
            last_name=args.last_name,
            password=args.password,
        )
    )
    if user is None:
        print("admin already exists; nothing to do")
    else:
        print(f"created admin user id={user['id']} email={user['email']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
