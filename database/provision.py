"""Provision the Postgres schema behind a Supabase project.

This module handles:
- Connection setup (SSL unless the URL asks for sslmode=disable)
- Retrying transient connection failures
- Running the versioned schema migrations
"""

import logging
import ssl
from typing import Optional, Dict, Any
from urllib.parse import urlparse, parse_qs

import asyncpg
import backoff

from .exceptions import DatabaseSchemaError
from .lib.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

def _get_ssl_context() -> ssl.SSLContext:
    """Create SSL context for hosted Postgres connections."""
    ssl_context = ssl.create_default_context()
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    ssl_context.check_hostname = True
    return ssl_context

def _get_connection_kwargs(db_url: str) -> Dict[str, Any]:
    """Get connection kwargs from database URL.

    Args:
        db_url: Database connection URL

    Returns:
        Dict of connection parameters
    """
    parsed = urlparse(db_url)
    params = parse_qs(parsed.query)

    kwargs: Dict[str, Any] = {
        'server_settings': {
            'statement_timeout': '300000',  # 5 minutes
        }
    }

    if params.get('sslmode', [''])[0] != 'disable':
        kwargs['ssl'] = _get_ssl_context()

    return kwargs

@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError),
    max_tries=5
)
async def _create_pool(db_url: str) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        db_url,
        min_size=1,
        max_size=2,
        command_timeout=60.0,
        **_get_connection_kwargs(db_url)
    )

async def provision(db_url: Optional[str] = None) -> int:
    """Apply every pending schema version to the remote database.

    Args:
        db_url: Optional database URL. If not provided, will use settings.

    Returns:
        The schema version after provisioning

    Raises:
        DatabaseSchemaError: If the URL is missing, the database is unreachable
            or a migration fails
    """
    if not db_url:
        # Import here to avoid circular imports
        from config import get_settings, SettingsError
        try:
            db_url = get_settings().get('db_url')
        except SettingsError as e:
            raise DatabaseSchemaError(str(e)) from e
    if not db_url:
        raise DatabaseSchemaError("Database URL not provided; set db_url or DATABASE_URL")

    try:
        pool = await _create_pool(db_url)
    except Exception as e:
        logger.error(f"Could not connect to database: {e}")
        raise DatabaseSchemaError(f"Could not connect to database: {e}")

    try:
        version = await SchemaManager(pool).initialize()
        logger.info(f"Database schema at version {version}")
        return version
    finally:
        await pool.close()

__all__ = ['provision']
