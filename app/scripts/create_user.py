"""
Bootstrap script — creates a user in the credential store.

Usage:
    uv run python -m app.scripts.create_user

Normal sign-up happens elsewhere on the platform; this exists so a
fresh environment has an account to log in with.
"""

import asyncio
import getpass

from app.core.database import async_session_factory, engine
from app.services import user_service


async def create_user() -> None:
    async with async_session_factory() as session:
        # ── Collect input ────────────────────────────────────────────
        print("\nCreate user\n")
        login = input("  Login:    ").strip()
        email = input("  Email:    ").strip()
        password = getpass.getpass("  Password: ")
        confirm = getpass.getpass("  Confirm:  ")

        if password != confirm:
            print("\nPasswords do not match.")
            await engine.dispose()
            return

        if not login or not email or not password:
            print("\nAll fields are required.")
            await engine.dispose()
            return

        # ── Check for existing user ──────────────────────────────────
        for identifier in (login, email):
            if await user_service.find_by_login_or_email(identifier, session):
                print(f"\nUser '{identifier}' already exists.")
                await engine.dispose()
                return

        user = await user_service.create_user(login, email, password, session)
        await session.commit()

        print("\nUser created.")
        print(f"    ID:    {user.id}")
        print(f"    Login: {user.login}")
        print(f"    Email: {user.email}")
        print("\n   You can now log in via POST /api/auth/login\n")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(create_user())
