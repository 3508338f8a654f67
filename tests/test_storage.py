"""
Key-value store tests.

Run with: python -m pytest tests/test_storage.py -v
"""

import json

import pytest

from services.documents import PersistenceError
from services.storage import KeyValueStore, MemoryBackend, SQLAlchemyBackend


class BrokenBackend(MemoryBackend):
    """Backend whose writes always fail."""

    def write(self, key, serialized):
        raise OSError("disk full")


class TestKeyValueStore:

    @pytest.fixture(autouse=True)
    def setup(self):
        self.store = KeyValueStore(MemoryBackend())
        self.events = []
        self.store.subscribe(lambda key, value: self.events.append((key, value)))

    def test_get_missing_returns_fallback(self):
        assert self.store.get('templates', []) == []
        assert self.store.get('templates') is None

    def test_set_then_get(self):
        self.store.set('templates', [{'id': 't1'}])
        assert self.store.get('templates') == [{'id': 't1'}]

    def test_set_notifies_with_key_and_serialized_value(self):
        self.store.set('contracts', [{'id': 'c1'}])
        assert len(self.events) == 1
        key, value = self.events[0]
        assert key == 'contracts'
        assert json.loads(value) == [{'id': 'c1'}]

    def test_unsubscribe_stops_notifications(self):
        listener = lambda key, value: self.events.append(('second', key))
        self.store.subscribe(listener)
        self.store.unsubscribe(listener)
        self.store.set('users', [])
        assert self.events == [('users', '[]')]

    def test_failing_listener_does_not_block_write(self):
        def broken(key, value):
            raise RuntimeError("listener bug")

        self.store.subscribe(broken)
        self.store.set('users', [{'id': 'u1'}])
        assert self.store.get('users') == [{'id': 'u1'}]

    def test_unreadable_value_returns_fallback(self):
        self.store.backend.write('templates', '{not json')
        assert self.store.get('templates', []) == []

    def test_unreadable_collection_blocks_writes(self):
        self.store.add_item('documents', {'id': 'd1'})
        self.store.backend.write('documents', '[{"id": "d1"')

        with pytest.raises(PersistenceError) as exc_info:
            self.store.add_item('documents', {'id': 'd2'})
        assert exc_info.value.key == 'documents'
        with pytest.raises(PersistenceError):
            self.store.update_item('documents', 'd1', {'title': 'x'})
        with pytest.raises(PersistenceError):
            self.store.remove_item('documents', 'd1')
        assert self.store.backend.read('documents') == '[{"id": "d1"'

    def test_non_list_collection_is_rejected(self):
        self.store.backend.write('contracts', '{"id": "c1"}')
        with pytest.raises(PersistenceError):
            self.store.get_collection('contracts')

    def test_collection_helpers(self):
        self.store.add_item('contracts', {'id': 'c1', 'status': 'sent'})
        self.store.add_item('contracts', {'id': 'c2', 'status': 'sent'})

        updated = self.store.update_item('contracts', 'c1', {'status': 'agreed'})
        assert updated == {'id': 'c1', 'status': 'agreed'}
        assert self.store.find_item('contracts', 'c1')['status'] == 'agreed'
        assert self.store.update_item('contracts', 'missing', {'status': 'x'}) is None

        assert self.store.remove_item('contracts', 'c2') is True
        assert self.store.remove_item('contracts', 'c2') is False
        assert [c['id'] for c in self.store.get_collection('contracts')] == ['c1']

    def test_clear_all(self):
        self.store.set('templates', [{'id': 't1'}])
        self.store.set('users', [{'id': 'u1'}])
        self.store.clear_all()
        assert self.store.get_collection('templates') == []
        assert self.store.get_collection('users') == []

    def test_transaction_is_reentrant(self):
        with self.store.transaction():
            with self.store.transaction():
                self.store.add_item('templates', {'id': 't1'})
        assert self.store.find_item('templates', 't1') == {'id': 't1'}


class TestBackendFailures:

    def test_write_failure_raises_persistence_error(self):
        store = KeyValueStore(BrokenBackend())
        events = []
        store.subscribe(lambda key, value: events.append(key))

        with pytest.raises(PersistenceError) as exc_info:
            store.set('templates', [])
        assert exc_info.value.key == 'templates'
        assert events == []


class TestSQLAlchemyBackend:

    def test_round_trip_through_database(self, app):
        with app.app_context():
            store = KeyValueStore(SQLAlchemyBackend())
            store.set('contracts', [{'id': 'c1'}])
            store.set('contracts', [{'id': 'c1'}, {'id': 'c2'}])
            assert [c['id'] for c in store.get_collection('contracts')] == ['c1', 'c2']

            store.delete('contracts')
            assert store.get('contracts', []) == []
