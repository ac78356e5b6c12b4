"""
Unit tests for handover_portal/database.py -- schema bootstrap, progress
recompute, checklist templates and the label backfill.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from handover_portal import data_access
from handover_portal.config import DEFAULT_ADMIN_EMAIL
from handover_portal.database import (
    SCHEMA_COLUMNS,
    init_database,
    reset_database,
    recalculate_handover_progress,
    apply_checklist_template,
    backfill_task_labels,
)
from handover_portal.workflow import WorkflowError

pytestmark = pytest.mark.unit


def _template(tenant_id, titles):
    template = data_access.insert('checklist_templates', {'tenant_id': tenant_id, 'name': 'Exit', 'role': 'exiting'})
    for idx, title in enumerate(titles):
        data_access.insert('checklist_template_tasks', {
            'template_id': template['id'], 'title': title, 'order_index': len(titles) - idx,
        })
    return template


# ── Bootstrap ────────────────────────────────────────────────────────

class TestInitDatabase:
    def test_creates_every_table(self, temp_db):
        for table in SCHEMA_COLUMNS:
            assert data_access.query(table, limit=1) is not None

    def test_default_admin_once(self, temp_db):
        init_database()
        admins = data_access.query('users', {'email': DEFAULT_ADMIN_EMAIL})
        assert len(admins) == 1
        assert admins[0]['role'] == 'admin'

    def test_reset_drops_data(self, temp_db):
        data_access.insert('tenants', {'name': 'Acme', 'slug': 'acme'})
        reset_database()
        assert data_access.query('tenants', {'slug': 'acme'}) == []
        assert len(data_access.query('tenants')) == 1


# ── Progress recompute ───────────────────────────────────────────────

class TestRecalculateProgress:
    def test_share_of_completed_tasks(self, handover_db):
        task = handover_db['tasks'][0]
        data_access.update('tasks', task['id'], {'status': 'completed'})
        result = recalculate_handover_progress(handover_db['handover']['id'])
        assert result == {'progress': 50, 'status': 'in-progress'}
        assert data_access.get_by_id('handovers', handover_db['handover']['id'])['progress'] == 50

    def test_legacy_done_counts(self, handover_db):
        for task in handover_db['tasks']:
            data_access.update('tasks', task['id'], {'status': 'done'})
        assert recalculate_handover_progress(handover_db['handover']['id'])['status'] == 'review'

    def test_no_tasks_keeps_stored_progress(self, handover_db):
        h = data_access.insert('handovers', {'employee_id': handover_db['employee']['id'], 'progress': 40})
        assert recalculate_handover_progress(h['id'])['progress'] == 40

    def test_missing_handover(self, temp_db):
        assert recalculate_handover_progress(999) == {}


# ── Checklist templates ──────────────────────────────────────────────

class TestApplyChecklistTemplate:
    def test_creates_tasks_in_template_order(self, handover_db):
        template = _template(handover_db['tenant']['id'], ["First", "Second", "Third"])
        h = data_access.insert('handovers', {'employee_id': handover_db['employee']['id']})
        assert apply_checklist_template(h['id'], template['id']) == 3
        titles = [t['title'] for t in data_access.query('tasks', {'handover_id': h['id']}, order_by='id')]
        # order_index descends with list position
        assert titles == ["Third", "Second", "First"]

    def test_second_application_creates_nothing(self, handover_db):
        template = _template(handover_db['tenant']['id'], ["A", "B"])
        handover_id = handover_db['handover']['id']
        assert apply_checklist_template(handover_id, template['id']) == 2
        assert apply_checklist_template(handover_id, template['id']) == 0
        assert len(data_access.query('tasks', {'handover_id': handover_id})) == 4

    def test_new_template_task_added_later(self, handover_db):
        template = _template(handover_db['tenant']['id'], ["A"])
        handover_id = handover_db['handover']['id']
        apply_checklist_template(handover_id, template['id'])
        data_access.insert('checklist_template_tasks', {'template_id': template['id'], 'title': 'B'})
        assert apply_checklist_template(handover_id, template['id']) == 1

    def test_template_defaults_copied(self, handover_db):
        template = _template(handover_db['tenant']['id'], ["A"])
        h = data_access.insert('handovers', {'employee_id': handover_db['employee']['id']})
        apply_checklist_template(h['id'], template['id'])
        task = data_access.query('tasks', {'handover_id': h['id']})[0]
        assert task['status'] == 'pending'
        assert task['category'] == 'General'
        assert task['priority'] == 'medium'

    def test_progress_recomputed(self, handover_db):
        handover_id = handover_db['handover']['id']
        for task in handover_db['tasks']:
            data_access.update('tasks', task['id'], {'status': 'completed'})
        recalculate_handover_progress(handover_id)
        apply_checklist_template(handover_id, _template(handover_db['tenant']['id'], ["A", "B"])['id'])
        assert data_access.get_by_id('handovers', handover_id)['progress'] == 50

    def test_missing_handover(self, temp_db):
        with pytest.raises(LookupError):
            apply_checklist_template(999, 1)

    def test_closed_handover_rejected(self, handover_db):
        handover_id = handover_db['handover']['id']
        data_access.update('handovers', handover_id, {'status': 'completed', 'progress': 100})
        template = _template(handover_db['tenant']['id'], ["A"])
        with pytest.raises(WorkflowError):
            apply_checklist_template(handover_id, template['id'])
        assert len(data_access.query('tasks', {'handover_id': handover_id})) == 2


# ── Backfill ─────────────────────────────────────────────────────────

class TestBackfillTaskLabels:
    def test_fills_only_null_columns(self, handover_db):
        handover_id = handover_db['handover']['id']
        legacy = data_access.insert('tasks', {'handover_id': handover_id, 'title': 'Client meeting', 'status': 'critical'})
        assert backfill_task_labels() == 1
        row = data_access.get_by_id('tasks', legacy['id'])
        assert row['priority'] == 'critical'
        assert row['category'] == 'Client Management'
        assert data_access.get_by_id('tasks', handover_db['tasks'][0]['id'])['priority'] == 'high'

    def test_second_run_is_noop(self, handover_db):
        data_access.insert('tasks', {'handover_id': handover_db['handover']['id'], 'title': 'x', 'status': 'pending'})
        backfill_task_labels()
        assert backfill_task_labels() == 0
