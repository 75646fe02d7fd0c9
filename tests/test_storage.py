"""Tests for the persistent record store."""

import json
import pytest

from storage import RecordStore, StorageError, COLLECTIONS, PRODUCTS, CURRENT_USER

@pytest.fixture
def store(tmp_path):
    """Create a record store in a temporary directory."""
    return RecordStore(str(tmp_path / 'store'), prefix='test_')

def test_missing_key_reads_empty(store):
    """Test that a key never written reads as an empty array."""
    assert store.read(PRODUCTS) == []
    assert not store.exists(PRODUCTS)

def test_write_then_read(store):
    """Test that written records come back unchanged."""
    records = [{'id': '1', 'title': 'Lamp'}, {'id': '2', 'title': 'Rug'}]
    store.write(PRODUCTS, records)

    assert store.read(PRODUCTS) == records
    assert store.path(PRODUCTS).name == 'test_products.json'

    # Persisted between store instances
    reopened = RecordStore(str(store.root), prefix='test_')
    assert reopened.read(PRODUCTS) == records

def test_prefix_isolates_stores(store):
    """Test that stores with different prefixes do not see each other."""
    store.write(PRODUCTS, [{'id': '1'}])
    other = RecordStore(str(store.root), prefix='other_')
    assert other.read(PRODUCTS) == []

def test_ensure_creates_only_missing_keys(store):
    """Test that ensure leaves existing data alone."""
    store.write(PRODUCTS, [{'id': '1'}])
    store.ensure(COLLECTIONS)

    for key in COLLECTIONS:
        assert store.exists(key)
    assert store.read(PRODUCTS) == [{'id': '1'}]

def test_corrupt_document_raises(store):
    """Test that unreadable JSON is reported as a storage error."""
    store.root.mkdir(parents=True)
    store.path(PRODUCTS).write_text('{not json', encoding='utf-8')

    with pytest.raises(StorageError):
        store.read(PRODUCTS)

def test_non_array_document_raises(store):
    """Test that a collection holding an object is rejected."""
    store.root.mkdir(parents=True)
    store.path(PRODUCTS).write_text(json.dumps({'id': '1'}), encoding='utf-8')

    with pytest.raises(StorageError):
        store.read(PRODUCTS)

def test_slots(store):
    """Test setting, reading and clearing a single-record slot."""
    assert store.get_slot(CURRENT_USER) is None

    store.set_slot(CURRENT_USER, {'id': 'u1', 'email': 'a@example.com'})
    assert store.get_slot(CURRENT_USER) == {'id': 'u1', 'email': 'a@example.com'}

    store.clear_slot(CURRENT_USER)
    assert store.get_slot(CURRENT_USER) is None

    # Clearing an empty slot is a no-op
    store.clear_slot(CURRENT_USER)

def test_batch_commits(store):
    """Test that a batch without errors keeps every write."""
    with store.batch(PRODUCTS, 'orders'):
        store.write(PRODUCTS, [{'id': 'p1'}])
        store.write('orders', [{'id': 'o1'}])

    assert store.read(PRODUCTS) == [{'id': 'p1'}]
    assert store.read('orders') == [{'id': 'o1'}]

def test_batch_rolls_back(store):
    """Test that a failing batch restores every key it covers."""
    store.write(PRODUCTS, [{'id': 'p1', 'inventory': 3}])

    with pytest.raises(RuntimeError):
        with store.batch(PRODUCTS, 'orders'):
            store.write(PRODUCTS, [{'id': 'p1', 'inventory': 0}])
            store.write('orders', [{'id': 'o1'}])
            raise RuntimeError("boom")

    assert store.read(PRODUCTS) == [{'id': 'p1', 'inventory': 3}]
    # Key that did not exist before the batch is removed again
    assert not store.exists('orders')

def test_no_temp_files_left(store):
    """Test that atomic writes clean up after themselves."""
    store.write(PRODUCTS, [{'id': '1'}])
    store.write(PRODUCTS, [{'id': '2'}])

    leftovers = [p.name for p in store.root.iterdir() if p.suffix == '.tmp']
    assert leftovers == []
