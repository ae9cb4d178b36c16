"""Baseline migration - forms, submissions, workflows, jobs, settings

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-01

Creates every table the forms backend needs. Portable across PostgreSQL
and SQLite (local development).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Users
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('login', sa.String(100), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', TS, nullable=False),
    )

    # ==========================================================================
    # Email templates
    # ==========================================================================
    op.create_table(
        'email_templates',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False, unique=True),
        sa.Column('system_type', sa.String(50), nullable=True),
        sa.Column('subject', sa.String(500), nullable=False),
        sa.Column('body_html', sa.Text(), nullable=False),
        sa.Column('body_text', sa.Text(), nullable=True),
        sa.Column('variables', sa.JSON(), nullable=True),
        sa.Column('include_submission_data', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
    )

    # ==========================================================================
    # Forms
    # ==========================================================================
    op.create_table(
        'form_categories',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.JSON(), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False, unique=True),
        sa.Column('description', sa.JSON(), nullable=True),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('icon', sa.String(50), nullable=True),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', TS, nullable=False),
    )

    op.create_table(
        'forms',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.JSON(), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False, unique=True),
        sa.Column('description', sa.JSON(), nullable=True),
        sa.Column('schema', sa.JSON(), nullable=False),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('prevent_duplicates', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('duplicate_message', sa.JSON(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('keywords', sa.JSON(), nullable=True),
        sa.Column('send_confirmation_email', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            'category_id', sa.Uuid(),
            sa.ForeignKey('form_categories.id', ondelete='SET NULL'), nullable=True,
        ),
        # FK to workflows is added below (circular reference)
        sa.Column('workflow_id', sa.Uuid(), nullable=True),
        sa.Column(
            'email_template_id', sa.Uuid(),
            sa.ForeignKey('email_templates.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column(
            'approval_email_template_id', sa.Uuid(),
            sa.ForeignKey('email_templates.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column(
            'rejection_email_template_id', sa.Uuid(),
            sa.ForeignKey('email_templates.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
    )

    op.create_table(
        'form_submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('form_id', sa.Uuid(), sa.ForeignKey('forms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('admin_response', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('reviewed_at', TS, nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', TS, nullable=False),
    )
    op.create_index('idx_submissions_form_status', 'form_submissions', ['form_id', 'status'])
    op.create_index('idx_submissions_created', 'form_submissions', ['created_at'])

    # ==========================================================================
    # Workflows
    # ==========================================================================
    op.create_table(
        'workflows',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('form_id', sa.Uuid(), sa.ForeignKey('forms.id', ondelete='CASCADE'), nullable=True),
        sa.Column('trigger_on', sa.String(50), nullable=False, server_default='submission'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('nodes', sa.JSON(), nullable=False),
        sa.Column('edges', sa.JSON(), nullable=False),
        sa.Column('created_at', TS, nullable=False),
    )
    op.create_index('idx_workflows_form_trigger', 'workflows', ['form_id', 'trigger_on', 'is_active'])

    with op.batch_alter_table('forms') as batch:
        batch.create_foreign_key(
            'fk_forms_workflow_id', 'workflows', ['workflow_id'], ['id'], ondelete='SET NULL'
        )

    op.create_table(
        'workflow_executions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'workflow_id', sa.Uuid(),
            sa.ForeignKey('workflows.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column(
            'submission_id', sa.Uuid(),
            sa.ForeignKey('form_submissions.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('current_node_id', sa.String(100), nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('context', sa.JSON(), nullable=False),
        sa.Column('logs', sa.JSON(), nullable=False),
        sa.Column('started_at', TS, nullable=True),
        sa.Column('completed_at', TS, nullable=True),
    )
    op.create_index('idx_wf_exec_status', 'workflow_executions', ['status'])

    op.create_table(
        'approval_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'workflow_execution_id', sa.Uuid(),
            sa.ForeignKey('workflow_executions.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('node_id', sa.String(100), nullable=False),
        sa.Column('token', sa.String(64), nullable=False, unique=True),
        sa.Column('approver_email', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('approved_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('responded_at', TS, nullable=True),
        sa.Column('expires_at', TS, nullable=True),
        sa.Column('created_at', TS, nullable=False),
    )
    op.create_index('idx_approval_status_expires', 'approval_requests', ['status', 'expires_at'])

    # ==========================================================================
    # Jobs
    # ==========================================================================
    op.create_table(
        'jobs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('job_type', sa.String(50), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('run_at', TS, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('backoff_seconds', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('completed_at', TS, nullable=True),
    )
    op.create_index('idx_jobs_pending', 'jobs', ['status', 'run_at'])

    # ==========================================================================
    # Settings + audit
    # ==========================================================================
    op.create_table(
        'settings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('key', sa.String(255), nullable=False, unique=True),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('updated_at', TS, nullable=False),
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('model_type', sa.String(100), nullable=True),
        sa.Column('model_id', sa.String(64), nullable=True),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', TS, nullable=False),
    )
    op.create_index('idx_audit_action_created', 'audit_logs', ['action', 'created_at'])
    op.create_index('idx_audit_model', 'audit_logs', ['model_type', 'model_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('audit_logs')
    op.drop_table('settings')
    op.drop_table('jobs')
    op.drop_table('approval_requests')
    op.drop_table('workflow_executions')
    with op.batch_alter_table('forms') as batch:
        batch.drop_constraint('fk_forms_workflow_id', type_='foreignkey')
    op.drop_table('workflows')
    op.drop_table('form_submissions')
    op.drop_table('forms')
    op.drop_table('form_categories')
    op.drop_table('email_templates')
    op.drop_table('users')
