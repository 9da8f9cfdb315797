"""Populate the database with random users from the identity service."""
import argparse
import asyncio
import logging
import time

from commentboard.config import settings
from commentboard.database import Database
from commentboard.identity import RandomUserClient
from commentboard.services import user_service

logger = logging.getLogger("seed")


async def seed(count: int, reset: bool = False):
    database = Database.from_settings(settings)
    provider = RandomUserClient(settings.IDENTITY_API_URL)
    start = time.perf_counter()

    try:
        if reset:
            await database.drop_all()
        await database.create_all()

        async with database.session() as session:
            users = await user_service.populate_random_users(session, provider, count)
    finally:
        await provider.aclose()
        await database.dispose()

    elapsed = time.perf_counter() - start
    print(f"Seeding complete in {elapsed:.1f}s")
    for user in users:
        print(f"  #{user.id}: {user.name}")


def main():
    parser = argparse.ArgumentParser(description="Seed the comment board database")
    parser.add_argument("--count", type=int, default=settings.POPULATE_COUNT, help="Number of users to create")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate all tables first")
    args = parser.parse_args()
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    asyncio.run(seed(args.count, reset=args.reset))


if __name__ == "__main__":
    main()
