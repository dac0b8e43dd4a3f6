#!/usr/bin/env python3
"""
Promote a registered user to ADMIN. Run on the server.

Usage:
    DATABASE_URL=... python demo/promote_admin.py admin@tmcdemo.com
"""
import asyncio
import sys

from sqlalchemy import update

from tmc_ledger.database import engine, unit_of_work
from tmc_ledger.models.user import User, UserRole


async def promote(email: str) -> int:
    async with unit_of_work() as db:
        result = await db.execute(
            update(User).where(User.email == email).values(role=UserRole.ADMIN)
        )
    await engine.dispose()
    return result.rowcount


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: promote_admin.py <email>")
    print(f"Rows updated: {asyncio.run(promote(sys.argv[1]))}")
