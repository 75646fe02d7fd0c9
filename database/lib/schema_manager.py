"""Database schema management module.

This module provisions the Postgres schema the remote engine relies on:
tables, check constraints, foreign keys, indexes, triggers and the raw SQL
(row level security, views, functions) listed under each version's
'migrations'. It records applied versions in `schema_version` and applies
every pending version in order, each in its own transaction.
"""
import importlib
import logging
from pathlib import Path
from typing import Dict, Any, List

from ..exceptions import DatabaseSchemaError

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).resolve().parent.parent / 'schema'
SCHEMA_PACKAGE = 'database.schema'

class SchemaManager:
    """Manages database schema versioning and migrations."""

    def __init__(self, pool, schema_dir: Path = SCHEMA_DIR, package: str = SCHEMA_PACKAGE) -> None:
        """Initialize schema manager.

        Args:
            pool: asyncpg connection pool
            schema_dir: Directory containing schema version files
            package: Import path of the schema directory
        """
        self.pool = pool
        self._schema_dir = Path(schema_dir)
        self._package = package
        self.current_version = 0
        self._schema_files: Dict[int, Dict[str, Any]] = {}

    async def initialize(self) -> int:
        """Bring the database up to the latest schema version.

        Returns:
            The schema version after migrating

        Raises:
            DatabaseSchemaError: If no valid schema files are found or a migration fails
        """
        try:
            async with self.pool.acquire() as conn:
                await conn.execute('''
                    CREATE TABLE IF NOT EXISTS schema_version (
                        version INT8 PRIMARY KEY,
                        applied_at TIMESTAMPTZ NOT NULL DEFAULT now()
                    )
                ''')

                row = await conn.fetchrow(
                    'SELECT version FROM schema_version ORDER BY version DESC LIMIT 1'
                )
                self.current_version = row['version'] if row else 0

            schema_files = self._load_schema_files()
            if not schema_files:
                logger.error("No valid schema files found in schema directory")
                raise DatabaseSchemaError("No valid schema files found in schema directory")

            await self._apply_migrations(schema_files)
            return self.current_version

        except DatabaseSchemaError:
            raise
        except Exception as e:
            logger.error(f"Schema initialization failed: {e}")
            raise DatabaseSchemaError(f"Failed to initialize schema: {e}")

    def _load_schema_files(self) -> Dict[int, Dict[str, Any]]:
        """Load all schema version files.

        Returns:
            Dict mapping version numbers to schema definitions
        """
        schema_files = {}

        if not self._schema_dir.exists():
            return schema_files

        for file in self._schema_dir.glob('v*.py'):
            try:
                version = int(file.stem[1:])  # Extract number from vX.py
            except ValueError:
                logger.warning(f"Invalid schema filename: {file}")
                continue

            module = importlib.import_module(f"{self._package}.{file.stem}")
            if not hasattr(module, 'schema'):
                raise DatabaseSchemaError(
                    f"Schema file {file} missing 'schema' definition"
                )

            schema = module.schema
            if schema['version'] != version:
                raise DatabaseSchemaError(
                    f"Schema version mismatch in {file}: "
                    f"Expected v{version}, got v{schema['version']}"
                )

            schema_files[version] = schema

        self._schema_files = dict(sorted(schema_files.items()))
        return self._schema_files

    async def _apply_migrations(self, schema_files: Dict[int, Dict[str, Any]]) -> None:
        """Apply every schema version newer than the current one.

        Args:
            schema_files: Dict mapping version numbers to schema definitions
        """
        latest_version = max(schema_files.keys())
        if self.current_version >= latest_version:
            logger.info("Schema is up to date")
            return

        logger.info(
            f"Updating schema from version {self.current_version} to {latest_version}"
        )

        for version, schema in schema_files.items():
            if version <= self.current_version:
                continue
            try:
                async with self.pool.acquire() as conn:
                    async with conn.transaction():
                        await self._apply_version(conn, schema)
                        await conn.execute(
                            'INSERT INTO schema_version (version) VALUES ($1)',
                            version
                        )
            except Exception as e:
                logger.error(f"Schema migration to version {version} failed: {e}")
                raise DatabaseSchemaError(f"Failed to apply schema version {version}: {e}")

            self.current_version = version
            logger.info(f"Successfully migrated to version {version}")

    async def _apply_version(self, conn, schema: Dict[str, Any]) -> None:
        """Apply one schema version.

        Tables are created first so foreign keys can reference any table of
        the same version.
        """
        for table in schema.get('tables', []):
            await self._create_table(conn, table)

        for table in schema.get('tables', []):
            await self._add_constraints(conn, table)

        for trigger in schema.get('triggers', []):
            await self._create_trigger(conn, trigger)

        for statement in schema.get('migrations', []):
            await conn.execute(statement)

    async def _create_table(self, conn, table: Dict[str, Any]) -> None:
        """Create a single table without foreign keys.

        Args:
            conn: Database connection
            table: Table definition dictionary
        """
        columns = []
        constraints: List[str] = []

        for col in table['columns']:
            col_def = f"{col['name']} {col['type']}"

            if col.get('primary_key'):
                constraints.append(f"PRIMARY KEY ({col['name']})")
            elif col.get('unique'):
                constraints.append(f"UNIQUE ({col['name']})")

            if 'default' in col:
                col_def += f" DEFAULT {col['default']}"

            if col.get('nullable') is False:
                col_def += " NOT NULL"

            columns.append(col_def)

        # Add composite primary key if specified
        if isinstance(table.get('primary_key'), list):
            constraints.append(
                f"PRIMARY KEY ({', '.join(table['primary_key'])})"
            )

        for check in table.get('checks', []):
            constraints.append(f"CHECK ({check})")

        table_def = ', '.join(columns + constraints)

        await conn.execute(f'''
            CREATE TABLE IF NOT EXISTS {table['name']} (
                {table_def}
            )
        ''')
        logger.info(f"Created table {table['name']}")

    async def _add_constraints(self, conn, table: Dict[str, Any]) -> None:
        """Add foreign keys and indexes to a table.

        Args:
            conn: Database connection
            table: Table definition dictionary
        """
        for fk in table.get('foreign_keys', []):
            on_delete = f" ON DELETE {fk['on_delete']}" if 'on_delete' in fk else ''
            await conn.execute(f'''
                ALTER TABLE {table['name']}
                ADD CONSTRAINT fk_{table['name']}_{fk['columns'][0]}
                FOREIGN KEY ({', '.join(fk['columns'])})
                REFERENCES {fk['references']}{on_delete}
            ''')
            logger.info(
                f"Added foreign key constraint to {table['name']} "
                f"referencing {fk['references']}"
            )

        for idx in table.get('indexes', []):
            unique = 'UNIQUE ' if idx.get('unique') else ''
            where = f" WHERE {idx['where']}" if 'where' in idx else ''
            await conn.execute(f'''
                CREATE {unique}INDEX IF NOT EXISTS {idx['name']}
                ON {table['name']}({', '.join(idx['columns'])})
                {where}
            ''')
            logger.info(f"Created index {idx['name']} on {table['name']}")

    async def _create_trigger(self, conn, trigger: Dict[str, Any]) -> None:
        """Create a trigger function and trigger.

        Args:
            conn: Database connection
            trigger: Trigger definition dictionary
        """
        await conn.execute(f'''
            CREATE OR REPLACE FUNCTION {trigger['function_name']}()
            RETURNS TRIGGER
            AS $${trigger['function_body']}$$
            LANGUAGE plpgsql;
        ''')
        logger.info(f"Created trigger function {trigger['function_name']}")

        await conn.execute(f'''
            CREATE TRIGGER {trigger['name']}
            {trigger['timing']} {trigger['event']} ON {trigger['table']}
            FOR EACH ROW
            EXECUTE FUNCTION {trigger['function_name']}();
        ''')
        logger.info(f"Created trigger {trigger['name']} on {trigger['table']}")
