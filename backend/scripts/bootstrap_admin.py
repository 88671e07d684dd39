#!/usr/bin/env python3
"""Create an administrator account.
Usage: python scripts/bootstrap_admin.py --name admin --password 'secret123'"""
import argparse
import asyncio
import sys

from sessionauth.core.auth import hash_password
from sessionauth.db.session import async_session_maker, init_db
from sessionauth.services.session_store import DuplicateUserNameError, SessionStore


async def main(name: str, password: str) -> int:
    await init_db()
    async with async_session_maker() as session:
        store = SessionStore(session)
        if await store.find_user_by_name(name) is not None:
            print(f"User {name!r} already exists")
            return 1
        try:
            user = await store.create_user(name, hash_password(password), is_admin=True)
        except DuplicateUserNameError:
            print(f"User {name!r} already exists")
            return 1
        print(f"Created admin {user.name} ({user.id})")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--name", required=True)
    parser.add_argument("--password", required=True)
    args = parser.parse_args()
    if len(args.password) < 6:
        parser.error("password must be at least 6 characters")
    sys.exit(asyncio.run(main(args.name, args.password)))
