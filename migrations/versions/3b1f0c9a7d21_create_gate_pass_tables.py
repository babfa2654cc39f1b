"""create gate pass tables

Revision ID: 3b1f0c9a7d21
Revises:
Create Date: 2024-03-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b1f0c9a7d21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

USER_ROLE = sa.Enum('STAFF', 'HOD', 'CEO', 'DIRECTOR', 'SECURITY', 'ADMIN', name='userrole')
PASS_STATUS = sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'CHECKED_OUT', 'RETURNED', name='gatepassstatus')
PASS_ACTION = sa.Enum('SUBMIT', 'APPROVE', 'REJECT', 'CHECK_OUT', 'CHECK_IN', name='gatepassaction')


def _audit_columns():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
    ]


def upgrade():
    # Departments first; the head FK is added once users exists
    op.create_table(
        'departments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('head_user_id', sa.Integer(), nullable=True),
        sa.Column('parent_department_id', sa.Integer(), sa.ForeignKey('departments.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        *_audit_columns(),
    )
    op.create_index('ix_departments_id', 'departments', ['id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('payroll_no', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', USER_ROLE, nullable=False),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id'), nullable=True),
        sa.Column('reports_to_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('must_change_password', sa.Boolean(), nullable=True),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_payroll_no', 'users', ['payroll_no'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_department_id', 'users', ['department_id'])
    op.create_index('ix_users_reports_to_user_id', 'users', ['reports_to_user_id'])

    with op.batch_alter_table('departments') as batch_op:
        batch_op.create_foreign_key('fk_departments_head_user_id', 'users', ['head_user_id'], ['id'])

    op.create_table(
        'gate_passes',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('approver_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('destination', sa.String(length=255), nullable=False),
        sa.Column('status', PASS_STATUS, nullable=False),
        sa.Column('request_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expected_return', sa.DateTime(timezone=True), nullable=False),
        sa.Column('approval_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('out_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('in_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_audit_columns(),
    )
    op.create_index('ix_gate_passes_user_id', 'gate_passes', ['user_id'])
    op.create_index('ix_gate_passes_approver_id', 'gate_passes', ['approver_id'])
    op.create_index('ix_gate_passes_status', 'gate_passes', ['status'])
    op.create_index('ix_gate_passes_request_time', 'gate_passes', ['request_time'])

    op.create_table(
        'gate_pass_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('gate_pass_id', sa.String(length=36), sa.ForeignKey('gate_passes.id'), nullable=False),
        sa.Column('action', PASS_ACTION, nullable=False),
        sa.Column('actor_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('from_status', PASS_STATUS, nullable=True),
        sa.Column('to_status', PASS_STATUS, nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        *_audit_columns(),
    )
    op.create_index('ix_gate_pass_events_id', 'gate_pass_events', ['id'])
    op.create_index('ix_gate_pass_events_gate_pass_id', 'gate_pass_events', ['gate_pass_id'])

    op.create_table(
        'notification_queue',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('notification_type', sa.String(length=50), nullable=False),
        sa.Column('recipient_id', sa.Integer(), nullable=True),
        sa.Column('subject', sa.String(length=500), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('template_data', sa.JSON(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_id', sa.String(length=36), nullable=True),
        *_audit_columns(),
    )
    op.create_index('ix_notification_queue_id', 'notification_queue', ['id'])
    op.create_index('ix_notification_queue_recipient_id', 'notification_queue', ['recipient_id'])


def downgrade():
    op.drop_table('notification_queue')
    op.drop_table('gate_pass_events')
    op.drop_table('gate_passes')
    with op.batch_alter_table('departments') as batch_op:
        batch_op.drop_constraint('fk_departments_head_user_id', type_='foreignkey')
    op.drop_table('users')
    op.drop_table('departments')
    bind = op.get_bind()
    for enum in (PASS_ACTION, PASS_STATUS, USER_ROLE):
        enum.drop(bind, checkfirst=True)
