"""Command line interface for the data access layer.

    python -m database info        Show the selected engine and what it holds
    python -m database provision   Apply schema migrations to the Supabase database
    python -m database seed        Seed demo data into the local record store
"""

import argparse
import asyncio
import logging
import sys

from config import get_settings, default_settings, SettingsError
from storage import USERS, StorageError

from . import create_client, create_local_engine
from .exceptions import DatabaseError
from .provision import provision

logger = logging.getLogger(__name__)

async def info(settings) -> None:
    """Print the engine in use and a count of its products."""
    client = create_client(settings)
    result = await client.init()

    print("\nData Access Layer:")
    print("-" * 50)
    print(f"engine: {client.engine_name}")
    if not client.is_using_remote():
        print(f"storage_dir: {client.engine.store.root}")

    if not result.ok:
        print(f"status: unavailable ({result.error})")
        return

    products = await client.get_products()
    if products.ok:
        print(f"products: {len(products.data)}")
    else:
        print(f"products: error ({products.error})")
    await client.close()

async def seed(settings, force: bool) -> None:
    """Seed demo data into the local store."""
    engine = create_local_engine({**settings, 'seed_demo_data': False})
    await engine.init()
    if engine.store.read(USERS) and not force:
        print("Local store already has users; use --force to reseed")
        return
    engine.seed()
    print(f"Seeded demo data into {engine.store.root}")

async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog='python -m database', description=__doc__.splitlines()[0])
    commands = parser.add_subparsers(dest='command', required=True)
    commands.add_parser('info', help='show the selected engine')
    provision_parser = commands.add_parser('provision', help='apply schema migrations')
    provision_parser.add_argument('--db-url', help='override db_url / DATABASE_URL')
    seed_parser = commands.add_parser('seed', help='seed the local record store')
    seed_parser.add_argument('--force', action='store_true', help='overwrite existing records')
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
        error = None
    except SettingsError as e:
        settings, error = default_settings(), e

    # Configure logging
    logging.basicConfig(
        level=settings.get('log_level', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if error:
        logger.warning(f"Invalid settings, using defaults: {error}")

    try:
        if args.command == 'info':
            await info(settings)
        elif args.command == 'provision':
            version = await provision(args.db_url)
            print(f"Schema is at version {version}")
        elif args.command == 'seed':
            await seed(settings, args.force)
    except (DatabaseError, StorageError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 0

if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass
