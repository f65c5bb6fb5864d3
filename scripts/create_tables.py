import asyncio
import os

import asyncpg

from app.db.postgres import Datastore
from app.logger import logger


async def main():
    pool = await asyncpg.create_pool(os.environ["POSTGRES_URI"])
    store = Datastore(pool)

    logger.info("creating database tables")
    await store.create_users_table()
    await store.create_movies_table()
    await store.create_reviews_table()
    await store.create_watchlist_table()
    logger.info("created all required tables")
    await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
