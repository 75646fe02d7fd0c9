"""Data access layer for the Bazarlink marketplace.

This module handles:
- Engine selection (hosted Supabase project or the local record store)
- One async interface over whichever engine was selected
- Process-wide client lifecycle

Every operation returns a `Result`; failures are reported in its error slot
and never raised to the caller.
"""

import logging
from typing import Any, Dict, Optional

from config import get_settings, default_settings, remote_configured, SettingsError
from config.lib.load_settings_conf import DEFAULTS
from storage import RecordStore, StorageError

from .exceptions import (
    DatabaseError,
    InvalidRecordError,
    DuplicateUserError,
    InvalidCredentialsError,
    NotFoundError,
    DuplicateReviewError,
    InsufficientInventoryError,
    EmptyCartError,
    OperationNotSupportedError,
    RemoteServiceError,
    DatabaseSchemaError
)
from .result import Result
from .lib.local_engine import LocalEngine

logger = logging.getLogger(__name__)

_client: Optional['DataClient'] = None

class DataClient:
    """Async marketplace operations delegated to the selected engine."""

    def __init__(self, engine) -> None:
        self.engine = engine

    @property
    def engine_name(self) -> str:
        return self.engine.name

    def is_using_remote(self) -> bool:
        """Whether operations go to the hosted service."""
        return self.engine.is_using_remote()

    async def init(self) -> Result:
        """Prepare the engine.

        A failure is logged and returned; the engine stays selected and later
        operations report their own errors.
        """
        try:
            await self.engine.init()
        except (DatabaseError, StorageError) as e:
            logger.error(f"Failed to initialize {self.engine_name} engine: {e}")
            if not isinstance(e, DatabaseError):
                error = DatabaseError(f"Storage failure: {str(e)}")
                error.__cause__ = e
                return Result(error=error)
            return Result(error=e)
        return Result()

    async def close(self) -> None:
        await self.engine.close()

    # Session

    async def get_session(self) -> Result:
        return await self.engine.get_session()

    async def sign_in(self, email: str, password: str) -> Result:
        return await self.engine.sign_in(email, password)

    async def sign_up(
        self,
        email: str,
        password: str,
        user_metadata: Optional[Dict[str, Any]] = None
    ) -> Result:
        return await self.engine.sign_up(email, password, user_metadata)

    async def sign_out(self) -> Result:
        return await self.engine.sign_out()

    # Sellers

    async def get_seller_profile(self, user_id: str) -> Result:
        """Look up the seller profile owned by a user; data is None if there is none."""
        return await self.engine.get_seller_profile(user_id)

    async def create_seller_profile(self, seller_data) -> Result:
        return await self.engine.create_seller_profile(seller_data)

    async def update_seller_status(self, seller_id: str, status) -> Result:
        return await self.engine.update_seller_status(seller_id, status)

    # Products

    async def create_product(self, product) -> Result:
        return await self.engine.create_product(product)

    async def get_seller_products(self, seller_id: str) -> Result:
        return await self.engine.get_seller_products(seller_id)

    async def update_product(self, product) -> Result:
        """Apply a partial update; `product` must carry the product id."""
        return await self.engine.update_product(product)

    async def delete_product(self, product_id: str) -> Result:
        return await self.engine.delete_product(product_id)

    async def get_products(self) -> Result:
        return await self.engine.get_products()

    async def get_product_by_id(self, product_id: str) -> Result:
        return await self.engine.get_product_by_id(product_id)

    async def search_products(self, query: str, category: Optional[str] = None) -> Result:
        """Case-insensitive search over title and description.

        Args:
            query: Substring to look for
            category: Optional exact category filter
        """
        return await self.engine.search_products(query, category)

    # Cart

    async def add_to_cart(self, user_id: str, product_id: str, quantity: int = 1) -> Result:
        return await self.engine.add_to_cart(user_id, product_id, quantity)

    async def get_cart(self, user_id: str) -> Result:
        return await self.engine.get_cart(user_id)

    async def update_cart_item(self, user_id: str, product_id: str, quantity: int) -> Result:
        return await self.engine.update_cart_item(user_id, product_id, quantity)

    async def remove_cart_item(self, user_id: str, product_id: str) -> Result:
        return await self.engine.remove_cart_item(user_id, product_id)

    # Orders

    async def create_order(self, user_id: str, order_data=None) -> Result:
        """Place an order from the user's cart.

        The order, its items, the inventory decrement and the cart clear
        succeed or fail together.
        """
        return await self.engine.create_order(user_id, order_data)

    async def get_orders(self, user_id: str) -> Result:
        return await self.engine.get_orders(user_id)

    async def get_order_by_id(self, order_id: str) -> Result:
        return await self.engine.get_order_by_id(order_id)

    # Reviews

    async def add_review(self, user_id: str, product_id: str, review) -> Result:
        return await self.engine.add_review(user_id, product_id, review)

    async def get_product_reviews(self, product_id: str) -> Result:
        return await self.engine.get_product_reviews(product_id)

def create_local_engine(settings: Dict[str, Any]) -> LocalEngine:
    store = RecordStore(
        settings.get('storage_dir') or DEFAULTS['storage_dir'],
        settings.get('storage_prefix') or DEFAULTS['storage_prefix']
    )
    return LocalEngine(store, seed_demo_data=settings.get('seed_demo_data', False))

def create_client(settings: Optional[Dict[str, Any]] = None) -> DataClient:
    """Select an engine and wrap it in a DataClient.

    The hosted engine is used when both Supabase settings are real values.
    Anything that goes wrong while building it falls back to the local engine.

    Args:
        settings: Optional settings dict. If not provided, settings.conf and the
            environment are read; invalid settings fall back to the defaults.

    Returns:
        A DataClient; never None
    """
    if settings is None:
        try:
            settings = get_settings()
        except SettingsError as e:
            logger.error(f"Invalid settings, using local storage with defaults: {e}")
            return DataClient(create_local_engine(default_settings()))

    if remote_configured(settings):
        try:
            from .lib.remote_engine import RemoteEngine
            engine = RemoteEngine(settings['supabase_url'], settings['supabase_anon_key'])
            logger.info("Using Supabase engine")
            return DataClient(engine)
        except Exception as e:
            logger.warning(f"Could not set up Supabase engine, using local storage: {e}")
    else:
        logger.info("Supabase not configured, using local storage")

    return DataClient(create_local_engine(settings))

async def init_db(settings: Optional[Dict[str, Any]] = None) -> DataClient:
    """Create and initialize the process-wide client.

    Engine selection happens once; later calls return the same client.
    """
    global _client

    if _client is None:
        _client = create_client(settings)
        await _client.init()
    return _client

async def get_db() -> DataClient:
    """Get the process-wide client, initializing it on first use."""
    if not _client:
        await init_db()
    return _client

async def close() -> None:
    """Close the process-wide client."""
    global _client

    if _client:
        await _client.close()
        _client = None

# Export public interface
__all__ = [
    'DataClient',
    'Result',
    'create_client',
    'init_db',
    'get_db',
    'close',
    'DatabaseError',
    'InvalidRecordError',
    'DuplicateUserError',
    'InvalidCredentialsError',
    'NotFoundError',
    'DuplicateReviewError',
    'InsufficientInventoryError',
    'EmptyCartError',
    'OperationNotSupportedError',
    'RemoteServiceError',
    'DatabaseSchemaError'
]
