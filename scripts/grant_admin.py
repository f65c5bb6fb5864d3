"""
Grant or revoke admin rights, which gate movie creation and poster uploads.

    POSTGRES_URI=... python -m scripts.grant_admin alice
    POSTGRES_URI=... python -m scripts.grant_admin alice --revoke
"""

import argparse
import asyncio
import os

import asyncpg

from app.db.postgres import Datastore
from app.logger import logger


async def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("username")
    parser.add_argument("--revoke", action="store_true", help="remove admin rights instead")
    args = parser.parse_args()

    pool = await asyncpg.create_pool(os.environ["POSTGRES_URI"])
    store = Datastore(pool)
    updated = await store.set_user_admin(args.username, not args.revoke)
    await pool.close()
    if not updated:
        logger.error(f"user {args.username} not found")
        raise SystemExit(1)
    logger.info(f"user {args.username} admin = {not args.revoke}")


if __name__ == "__main__":
    asyncio.run(main())
