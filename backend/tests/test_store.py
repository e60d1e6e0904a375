"""
Tests for the JSON document store:
- id / timestamp maintenance
- partial unique index
- find sorting and windowing
- persistence and cross-handle visibility
- connection lifecycle
"""
import json
import os
import re

import pytest

from staffdb.store import (
    DocumentStore,
    DocumentValidationError,
    DuplicateKeyError,
    StoreConnectionError,
    StoreError,
    StoreNotConnectedError,
    format_timestamp,
)

_TS_RE = re.compile(r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$')


@pytest.fixture
def raw_store(data_dir):
    """Connected store without any schema registered."""
    s = DocumentStore(data_dir).connect()
    yield s
    s.close()


class TestInsert:

    def test_insert_assigns_id_and_timestamps(self, raw_store):
        doc = raw_store.insert_one('Things', {'name': 'a'})
        assert re.match(r'^[0-9a-f]{24}$', doc['id'])
        assert _TS_RE.match(doc['createdAt'])
        assert doc['createdAt'] == doc['updatedAt']
        assert doc['name'] == 'a'

    def test_insert_ignores_caller_supplied_id(self, raw_store):
        doc = raw_store.insert_one('Things', {'id': 'mine', 'createdAt': 'x'})
        assert doc['id'] != 'mine'
        assert doc['createdAt'] != 'x'

    def test_ids_are_unique_and_increasing(self, raw_store):
        ids = [raw_store.insert_one('Things', {'n': i})['id'] for i in range(20)]
        assert len(set(ids)) == 20
        assert ids == sorted(ids)

    def test_schema_defaults_and_validator(self, raw_store):
        def _validator(doc):
            if not doc.get('name'):
                raise DocumentValidationError('name', 'Path `name` is required.')
        raw_store.register_schema('Things', defaults={'active': True}, validator=_validator)
        doc = raw_store.insert_one('Things', {'name': 'x'})
        assert doc['active'] is True
        with pytest.raises(DocumentValidationError):
            raw_store.insert_one('Things', {})
        assert raw_store.count('Things') == 1

    def test_insert_returns_copy(self, raw_store):
        doc = raw_store.insert_one('Things', {'name': 'a'})
        doc['name'] = 'mutated'
        assert raw_store.find_one('Things', {'id': doc['id']})['name'] == 'a'


class TestUniqueIndex:

    def test_duplicate_key_rejected(self, raw_store):
        raw_store.create_index('Things', ('group', 'email'), unique=True, partial_string='email')
        raw_store.insert_one('Things', {'group': 'g', 'email': 'a@x.com'})
        with pytest.raises(DuplicateKeyError) as exc_info:
            raw_store.insert_one('Things', {'group': 'g', 'email': 'a@x.com'})
        assert exc_info.value.code == 11000
        assert exc_info.value.key_pattern == {'group': 1, 'email': 1}
        assert raw_store.count('Things') == 1

    def test_partial_index_skips_non_string(self, raw_store):
        raw_store.create_index('Things', ('group', 'email'), unique=True, partial_string='email')
        raw_store.insert_one('Things', {'group': 'g'})
        raw_store.insert_one('Things', {'group': 'g'})
        raw_store.insert_one('Things', {'group': 'g', 'email': None})
        assert raw_store.count('Things') == 3

    def test_other_group_same_email_allowed(self, raw_store):
        raw_store.create_index('Things', ('group', 'email'), unique=True, partial_string='email')
        raw_store.insert_one('Things', {'group': 'g1', 'email': 'a@x.com'})
        raw_store.insert_one('Things', {'group': 'g2', 'email': 'a@x.com'})
        assert raw_store.count('Things') == 2

    def test_update_into_duplicate_rejected(self, raw_store):
        raw_store.create_index('Things', ('group', 'email'), unique=True, partial_string='email')
        raw_store.insert_one('Things', {'group': 'g', 'email': 'a@x.com'})
        other = raw_store.insert_one('Things', {'group': 'g', 'email': 'b@x.com'})
        with pytest.raises(DuplicateKeyError):
            raw_store.update_one('Things', {'id': other['id']}, {'email': 'a@x.com'})
        assert raw_store.find_one('Things', {'id': other['id']})['email'] == 'b@x.com'

    def test_update_same_document_keeps_its_key(self, raw_store):
        raw_store.create_index('Things', ('group', 'email'), unique=True, partial_string='email')
        doc = raw_store.insert_one('Things', {'group': 'g', 'email': 'a@x.com', 'n': 1})
        updated = raw_store.update_one('Things', {'id': doc['id']}, {'n': 2})
        assert updated['n'] == 2

    def test_create_index_is_idempotent(self, raw_store):
        a = raw_store.create_index('Things', ('group', 'email'), partial_string='email')
        b = raw_store.create_index('Things', ('group', 'email'), partial_string='email')
        assert a is b


class TestFind:

    def test_filter_sort_skip_limit(self, raw_store):
        for n in (3, 1, 2, 5, 4):
            raw_store.insert_one('Things', {'n': n, 'kind': 'odd' if n % 2 else 'even'})
        odd = raw_store.find('Things', {'kind': 'odd'}, sort=[('n', 1)])
        assert [d['n'] for d in odd] == [1, 3, 5]
        desc = raw_store.find('Things', sort=[('n', -1)], skip=1, limit=2)
        assert [d['n'] for d in desc] == [4, 3]

    def test_compound_sort(self, raw_store):
        raw_store.insert_one('Things', {'a': 1, 'b': 2})
        raw_store.insert_one('Things', {'a': 0, 'b': 9})
        raw_store.insert_one('Things', {'a': 1, 'b': 1})
        docs = raw_store.find('Things', sort=[('a', 1), ('b', 1)])
        assert [(d['a'], d['b']) for d in docs] == [(0, 9), (1, 1), (1, 2)]

    def test_missing_values_sort_first(self, raw_store):
        raw_store.insert_one('Things', {'n': 1})
        raw_store.insert_one('Things', {})
        assert raw_store.find('Things', sort=[('n', 1)])[0].get('n') is None

    def test_count_independent_of_window(self, raw_store):
        for n in range(7):
            raw_store.insert_one('Things', {'n': n})
        assert len(raw_store.find('Things', limit=3)) == 3
        assert raw_store.count('Things') == 7

    def test_empty_collection(self, raw_store):
        assert raw_store.find('Nothing') == []
        assert raw_store.find_one('Nothing', {'id': 'x'}) is None
        assert raw_store.count('Nothing') == 0


class TestUpdate:

    def test_update_refreshes_updated_at_only(self, raw_store):
        doc = raw_store.insert_one('Things', {'n': 1})
        updated = raw_store.update_one('Things', {'id': doc['id']}, {'n': 2, 'id': 'x', 'createdAt': 'y'})
        assert updated['id'] == doc['id']
        assert updated['createdAt'] == doc['createdAt']
        assert updated['updatedAt'] >= doc['updatedAt']
        assert updated['n'] == 2

    def test_update_no_match_returns_none(self, raw_store):
        assert raw_store.update_one('Things', {'id': 'missing'}, {'n': 1}) is None


class TestPersistence:

    def test_collection_file_is_json_array(self, raw_store, data_dir):
        raw_store.insert_one('Things', {'n': 1})
        with open(os.path.join(data_dir, 'Things.json'), encoding='utf-8') as f:
            data = json.load(f)
        assert isinstance(data, list)
        assert data[0]['n'] == 1

    def test_reopen_sees_data(self, data_dir):
        s1 = DocumentStore(data_dir).connect()
        doc = s1.insert_one('Things', {'n': 1})
        s1.close()
        s2 = DocumentStore(data_dir).connect()
        try:
            assert s2.find_one('Things', {'id': doc['id']})['n'] == 1
        finally:
            s2.close()

    def test_second_handle_sees_writes(self, data_dir):
        a = DocumentStore(data_dir).connect()
        b = DocumentStore(data_dir).connect()
        try:
            a.insert_one('Things', {'n': 1})
            assert b.count('Things') == 1
            a.insert_one('Things', {'n': 2})
            assert b.count('Things') == 2
            b.insert_one('Things', {'n': 3})
            assert a.count('Things') == 3
        finally:
            a.close()
            b.close()

    def test_corrupted_file_raises_store_error(self, raw_store, data_dir):
        with open(os.path.join(data_dir, 'Things.json'), 'w', encoding='utf-8') as f:
            f.write('{not json')
        with pytest.raises(StoreError):
            raw_store.find('Things')


class TestLifecycle:

    def test_connect_creates_directory(self, tmp_path):
        target = tmp_path / 'nested' / 'data'
        s = DocumentStore(str(target)).connect()
        assert target.is_dir()
        assert s.is_connected
        s.close()
        assert not s.is_connected

    def test_connect_failure(self, tmp_path):
        blocker = tmp_path / 'file'
        blocker.write_text('x')
        with pytest.raises(StoreConnectionError):
            DocumentStore(str(blocker / 'data')).connect()

    def test_operations_require_connection(self, data_dir):
        s = DocumentStore(data_dir)
        with pytest.raises(StoreNotConnectedError):
            s.find('Things')
        with pytest.raises(StoreNotConnectedError):
            s.insert_one('Things', {})

    def test_transaction_is_reentrant(self, raw_store):
        with raw_store.transaction():
            with raw_store.transaction():
                raw_store.insert_one('Things', {'n': 1})
            raw_store.insert_one('Things', {'n': 2})
        assert raw_store.count('Things') == 2


class TestFormatTimestamp:

    def test_naive_is_utc(self):
        from datetime import datetime
        assert format_timestamp(datetime(2026, 1, 2, 3, 4, 5, 678000)) == '2026-01-02T03:04:05.678Z'

    def test_offset_converted(self):
        from datetime import datetime, timedelta, timezone
        value = datetime(2026, 1, 2, 10, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(value) == '2026-01-02T08:00:00.000Z'
