"""Tests for the JSON-backed activity log."""

import json
import threading

from common.activity_log import ActivityLog


class TestActivityLog:
    """Get/set/append behavior and persistence."""

    def test_get_missing_returns_default(self, tmp_path):
        log = ActivityLog(tmp_path / 'activity.json')
        assert log.get('uploads') is None
        assert log.get('uploads', []) == []

    def test_set_persists(self, tmp_path):
        path = tmp_path / 'activity.json'
        ActivityLog(path).set('last_key', 'doc1')

        assert ActivityLog(path).get('last_key') == 'doc1'

    def test_append_adds_timestamp(self, tmp_path):
        log = ActivityLog(tmp_path / 'activity.json')

        record = log.append('uploads', {'storage_key': 'doc1'})

        assert record['storage_key'] == 'doc1'
        assert 'recorded_at' in record
        assert log.get('uploads') == [record]

    def test_append_trims_oldest(self, tmp_path):
        log = ActivityLog(tmp_path / 'activity.json', max_entries=3)
        for i in range(5):
            log.append('uploads', {'n': i})

        assert [entry['n'] for entry in log.get('uploads')] == [2, 3, 4]

    def test_load_handles_corrupted_json(self, tmp_path):
        path = tmp_path / 'activity.json'
        path.write_text('{ not json')

        assert ActivityLog(path).get('uploads') is None

    def test_save_creates_parent_directories(self, tmp_path):
        path = tmp_path / 'a' / 'b' / 'activity.json'
        ActivityLog(path).set('k', 1)

        with open(path) as f:
            assert json.load(f) == {'k': 1}

    def test_concurrent_appends(self, tmp_path):
        log = ActivityLog(tmp_path / 'activity.json', max_entries=1000)

        def worker(offset):
            for i in range(20):
                log.append('uploads', {'n': offset + i})

        threads = [threading.Thread(target=worker, args=(t * 100,)) for t in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(log.get('uploads')) == 100
