"""Create connection workflow tables

Revision ID: 1f3c9a7e2b10
Revises:
Create Date: 2026-10-19 10:12:31.204117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '1f3c9a7e2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('email', sa.String(), nullable=True, unique=True),
        sa.Column('phone_number', sa.String(), nullable=True, unique=True),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('job_title', sa.String(), nullable=True),
        sa.Column('company', sa.String(), nullable=True),
        sa.Column('profile_image', sa.String(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('bio', postgresql.JSONB(), nullable=True),
        sa.Column('interests', postgresql.JSONB(), nullable=True),
        sa.Column('social_links', postgresql.JSONB(), nullable=True),
        sa.Column('public_profile', postgresql.JSONB(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('status', sa.Enum('active', 'inactive', 'suspended', name='userstatus'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table(
        'connection_codes',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('owner_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('code', sa.String(), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('scan_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_scanned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_scan_location', postgresql.JSONB(), nullable=True),
    )
    op.create_index('ix_connection_codes_owner_user_id', 'connection_codes', ['owner_user_id'])

    op.create_table(
        'scan_events',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('scan_id', sa.String(), nullable=False, unique=True),
        sa.Column('code', sa.String(), nullable=False),
        sa.Column('code_id', sa.String(), sa.ForeignKey('connection_codes.id'), nullable=False),
        sa.Column('owner_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('purpose', sa.String(), nullable=False, server_default='scan'),
        sa.Column('scanned_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('location', postgresql.JSONB(), nullable=True),
        sa.Column('device_info', postgresql.JSONB(), nullable=True),
        sa.Column('referrer', sa.Text(), nullable=True),
        sa.Column('session_id', sa.String(), nullable=False),
        sa.Column('viewer_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
    )
    op.create_index('ix_scan_events_code', 'scan_events', ['code'])
    op.create_index('ix_scan_events_owner_user_id', 'scan_events', ['owner_user_id'])
    op.create_index('ix_scan_events_session_id', 'scan_events', ['session_id'])

    op.create_table(
        'email_invitations',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('invitation_id', sa.String(), nullable=False, unique=True),
        sa.Column('recipient_email', sa.String(), nullable=False),
        sa.Column('sender_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('connection_code', sa.String(), nullable=False, unique=True),
        sa.Column('scan_snapshot', postgresql.JSONB(), nullable=True),
        sa.Column('email_sent_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.Enum('sent', 'opened', 'registered', 'expired', name='invitationstatus'), nullable=False),
        sa.Column('registered_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('registration_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_email_invitations_recipient_email', 'email_invitations', ['recipient_email'])
    op.create_index('ix_email_invitations_sender_user_id', 'email_invitations', ['sender_user_id'])

    op.create_table(
        'connection_memories',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('from_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('to_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('first_meeting_data', postgresql.JSONB(), nullable=False),
        sa.Column('connection_status', sa.Enum('pending', 'connected', 'declined', name='connectionstatus'), nullable=False),
        sa.Column('invitation_id', sa.String(), nullable=True, unique=True),
        sa.Column('scan_id', sa.String(), nullable=True),
        sa.Column('email_invitation_sent', sa.DateTime(timezone=True), nullable=True),
        sa.Column('registration_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_connection_memories_from_user_id', 'connection_memories', ['from_user_id'])
    op.create_index('ix_connection_memories_to_user_id', 'connection_memories', ['to_user_id'])

    op.create_table(
        'connection_requests',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('requester_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('target_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('code_id', sa.String(), sa.ForeignKey('connection_codes.id'), nullable=True),
        sa.Column('status', sa.Enum('pending', 'approved', 'declined', name='connectionrequeststatus'), nullable=False),
        sa.Column('requester_snapshot', postgresql.JSONB(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_connection_requests_requester_id', 'connection_requests', ['requester_id'])
    op.create_index('ix_connection_requests_target_user_id', 'connection_requests', ['target_user_id'])

    op.create_table(
        'contacts',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('owner_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('contact_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('request_id', sa.String(), sa.ForeignKey('connection_requests.id'), nullable=False, unique=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('job_title', sa.String(), nullable=True),
        sa.Column('company', sa.String(), nullable=True),
        sa.Column('profile_image', sa.String(), nullable=True),
        sa.Column('bio', postgresql.JSONB(), nullable=True),
        sa.Column('interests', postgresql.JSONB(), nullable=True),
        sa.Column('social_links', postgresql.JSONB(), nullable=True),
        sa.Column('tags', postgresql.JSONB(), nullable=True),
        sa.Column('badges', postgresql.JSONB(), nullable=True),
        sa.Column('mutual_connections', postgresql.JSONB(), nullable=True),
        sa.Column('tier', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('meeting_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('meeting_location', postgresql.JSONB(), nullable=True),
        sa.Column('first_met_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('connection_method', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('tier IN (1, 2, 3)', name='ck_contacts_tier'),
    )
    op.create_index('ix_contacts_owner_user_id', 'contacts', ['owner_user_id'])

    op.create_table(
        'contact_notes',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('contact_id', sa.String(), sa.ForeignKey('contacts.id'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_contact_notes_contact_id', 'contact_notes', ['contact_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('type', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('message', sa.String(), nullable=True),
        sa.Column('data', sa.Text(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])

    op.create_table(
        'rate_limit_attempts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_rate_limit_attempts_key', 'rate_limit_attempts', ['key'])
    op.create_index('ix_rate_limit_attempts_created_at', 'rate_limit_attempts', ['created_at'])


def downgrade() -> None:
    op.drop_table('rate_limit_attempts')
    op.drop_table('notifications')
    op.drop_table('contact_notes')
    op.drop_table('contacts')
    op.drop_table('connection_requests')
    op.drop_table('connection_memories')
    op.drop_table('email_invitations')
    op.drop_table('scan_events')
    op.drop_table('connection_codes')
    op.drop_table('users')
    op.execute('DROP TYPE connectionrequeststatus')
    op.execute('DROP TYPE connectionstatus')
    op.execute('DROP TYPE invitationstatus')
    op.execute('DROP TYPE userstatus')
