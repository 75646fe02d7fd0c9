"""Tests for engine selection and the DataClient facade."""

import importlib
import sys
import pytest
import pytest_asyncio
from decimal import Decimal
from unittest.mock import patch

import database
from database import DataClient, Result, create_client
from database.exceptions import DatabaseError, EmptyCartError, NotFoundError
from database.lib.local_engine import LocalEngine
from config.lib.load_settings_conf import ENV_OVERRIDES

def local_settings(tmp_path, **overrides):
    settings = {
        'storage_dir': str(tmp_path / 'store'),
        'storage_prefix': 'test_',
        'supabase_url': 'your-supabase-url',
        'supabase_anon_key': 'your-supabase-anon-key',
        'seed_demo_data': False
    }
    settings.update(overrides)
    return settings

@pytest_asyncio.fixture
async def db(tmp_path):
    """Create an initialized client over the local engine."""
    client = create_client(local_settings(tmp_path))
    await client.init()
    yield client
    await client.close()

@pytest_asyncio.fixture
async def shared_client():
    """Make sure the process-wide client is reset around a test."""
    await database.close()
    yield
    await database.close()

# Engine selection

def test_placeholders_select_local(tmp_path):
    """Test that the example placeholders fall back to local storage."""
    client = create_client(local_settings(tmp_path))
    assert isinstance(client, DataClient)
    assert client.engine_name == 'local'
    assert not client.is_using_remote()

def test_missing_supabase_settings_select_local(tmp_path):
    """Test that absent settings fall back to local storage."""
    client = create_client(local_settings(tmp_path, supabase_url='', supabase_anon_key=''))
    assert client.engine_name == 'local'

def test_real_settings_select_remote(tmp_path):
    """Test that real settings select the hosted engine without connecting."""
    client = create_client(local_settings(
        tmp_path,
        supabase_url='https://example.supabase.co',
        supabase_anon_key='anon-key'
    ))
    assert client.engine_name == 'supabase'
    assert client.is_using_remote()

def test_malformed_url_falls_back(tmp_path):
    """Test that a remote engine that cannot be built falls back to local."""
    client = create_client(local_settings(
        tmp_path,
        supabase_url='example.supabase.co',
        supabase_anon_key='anon-key'
    ))
    assert client.engine_name == 'local'

def test_import_failure_falls_back(tmp_path):
    """Test that a missing Supabase client library falls back to local."""
    with patch.dict(sys.modules, {'database.lib.remote_engine': None}):
        client = create_client(local_settings(
            tmp_path,
            supabase_url='https://example.supabase.co',
            supabase_anon_key='anon-key'
        ))
    assert client.engine_name == 'local'

def test_sparse_settings_use_defaults(tmp_path):
    """Test that a settings dict without storage keys still yields a client."""
    client = create_client({'supabase_url': '', 'supabase_anon_key': ''})
    assert isinstance(client.engine, LocalEngine)
    assert client.engine.store.prefix == 'bazarlink_'

# Never raises

@pytest.mark.asyncio
async def test_init_failure_is_returned(tmp_path):
    """Test that an unusable storage directory is reported, not raised."""
    blocker = tmp_path / 'not-a-directory'
    blocker.write_text('')
    client = create_client(local_settings(tmp_path, storage_dir=str(blocker)))

    result = await client.init()

    assert isinstance(result, Result)
    assert isinstance(result.error, DatabaseError)
    assert isinstance(await client.get_products(), Result)

@pytest.mark.asyncio
async def test_remote_unreachable_is_returned(tmp_path):
    """Test that a hosted engine that cannot connect reports errors in results."""
    client = create_client(local_settings(
        tmp_path,
        supabase_url='https://example.supabase.co',
        supabase_anon_key='anon-key'
    ))
    with patch.object(client.engine, 'init', side_effect=database.RemoteServiceError("unreachable")):
        result = await client.init()

    assert isinstance(result.error, database.RemoteServiceError)
    assert client.is_using_remote()

# Operations through the facade

@pytest.mark.asyncio
async def test_marketplace_flow(db):
    """Test a shopper buying from a seller through the facade."""
    seller_user = (await db.sign_up('seller@example.com', 'pw')).unwrap()
    seller = (await db.create_seller_profile({
        'user_id': seller_user.id,
        'business_name': 'Corner Shop'
    })).unwrap()
    assert (await db.update_seller_status(seller.id, 'approved')).ok

    lamp = (await db.create_product({
        'seller_id': seller.id,
        'title': 'Brass Lamp',
        'price': Decimal('100'),
        'inventory': 2
    })).unwrap()
    assert [p.id for p in (await db.get_seller_products(seller.id)).unwrap()] == [lamp.id]
    assert (await db.update_product({'id': lamp.id, 'category': 'Home'})).unwrap().category == 'Home'
    assert len((await db.search_products('brass', 'Home')).unwrap()) == 1

    shopper = (await db.sign_up('shopper@example.com', 'pw')).unwrap()
    assert (await db.get_session()).unwrap().user.id == shopper.id

    await db.add_to_cart(shopper.id, lamp.id)
    await db.update_cart_item(shopper.id, lamp.id, 2)
    order = (await db.create_order(shopper.id)).unwrap()

    assert order.total == Decimal('200')
    assert [o.id for o in (await db.get_orders(shopper.id)).unwrap()] == [order.id]
    assert len((await db.get_order_by_id(order.id)).unwrap().items) == 1
    assert (await db.get_product_by_id(lamp.id)).unwrap().inventory == 0
    assert (await db.get_cart(shopper.id)).unwrap() == []

    assert (await db.add_review(shopper.id, lamp.id, {'rating': 5})).ok
    assert len((await db.get_product_reviews(lamp.id)).unwrap()) == 1

    assert (await db.sign_out()).ok
    assert (await db.sign_in('shopper@example.com', 'pw')).ok

@pytest.mark.asyncio
async def test_errors_come_back_in_results(db):
    """Test that failures are returned, never raised."""
    result = await db.delete_product('missing')
    assert result.data is None
    assert isinstance(result.error, NotFoundError)

    result = await db.create_order('nobody')
    assert isinstance(result.error, EmptyCartError)

    result = await db.remove_cart_item('nobody', 'missing')
    assert isinstance(result.error, NotFoundError)
    with pytest.raises(NotFoundError):
        result.unwrap()

# Process-wide client

@pytest.mark.asyncio
async def test_init_db_selects_once(tmp_path, shared_client):
    """Test that the process-wide client is chosen once and reused."""
    client = await database.init_db(local_settings(tmp_path))
    assert await database.get_db() is client

    again = await database.init_db(local_settings(
        tmp_path,
        supabase_url='https://example.supabase.co',
        supabase_anon_key='anon-key'
    ))
    assert again is client
    assert again.engine_name == 'local'

    await database.close()
    assert database._client is None

# Settings read from disk and the environment

@pytest.fixture
def clean_environment(tmp_path, monkeypatch):
    """Run in an empty directory with no settings in the environment."""
    monkeypatch.chdir(tmp_path)
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    return tmp_path

def test_settings_file_is_read(clean_environment):
    """Test that settings.conf in the working directory selects the store."""
    store_dir = clean_environment / 'from-file'
    (clean_environment / 'settings.conf').write_text(
        f"[DEFAULT]\nstorage_dir = {store_dir}\nstorage_prefix = shop_\n",
        encoding='utf-8'
    )

    client = create_client()

    assert client.engine_name == 'local'
    assert client.engine.store.prefix == 'shop_'

def test_malformed_settings_file_falls_back(clean_environment):
    """Test that an invalid settings.conf still yields a local client."""
    (clean_environment / 'settings.conf').write_text(
        "[DEFAULT]\nseed_demo_data = maybe\n", encoding='utf-8'
    )

    client = create_client()

    assert isinstance(client, DataClient)
    assert client.engine_name == 'local'
    assert client.engine.store.prefix == 'bazarlink_'
    assert client.engine.seed_demo_data is True

def test_malformed_environment_falls_back(clean_environment, monkeypatch):
    """Test that an invalid environment override still yields a local client."""
    monkeypatch.setenv('BAZARLINK_LOG_LEVEL', 'loud')

    client = create_client()

    assert client.engine_name == 'local'
    assert not client.is_using_remote()

def test_import_ignores_malformed_settings(clean_environment, monkeypatch):
    """Test that importing the package does not read settings."""
    monkeypatch.setenv('BAZARLINK_LOG_LEVEL', 'loud')
    with patch.dict(sys.modules):
        for name in [m for m in sys.modules if m == 'config' or m.startswith(('config.', 'database'))]:
            del sys.modules[name]
        module = importlib.import_module('database')

    assert callable(module.create_client)
