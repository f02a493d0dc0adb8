"""Conversation retention schema.

Creates the tables the lifecycle engine works on:
- people / subject_contacts: subjects and their linked contacts (read-only here)
- conversations: live transcripts with retention metadata
- archived_conversations: archive envelope, one per original conversation
- erasure_requests: right-to-erasure requests
- lifecycle_events: immutable audit trail
- lifecycle_runs: per-pass summaries
- job_leases: advisory lease guarding overlapping passes

Revision ID: 001_conversation_retention_schema
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_conversation_retention_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create retention tables."""

    # -------------------------------------------------------------------------
    # 1. People and contacts
    # -------------------------------------------------------------------------
    print("  Creating people and subject_contacts tables...")

    op.create_table(
        'people',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone_number', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'subject_contacts',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('subject_id', sa.UUID(), nullable=False),
        sa.Column('contact_id', sa.UUID(), nullable=False),
        sa.ForeignKeyConstraint(['subject_id'], ['people.id']),
        sa.ForeignKeyConstraint(['contact_id'], ['people.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subject_contacts_subject_id', 'subject_contacts', ['subject_id'], unique=False)

    # -------------------------------------------------------------------------
    # 2. Conversations
    # -------------------------------------------------------------------------
    print("  Creating conversations table...")

    op.create_table(
        'conversations',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('subject_id', sa.UUID(), nullable=False),
        sa.Column('transcript', sa.Text(), nullable=False),
        sa.Column('sentiment', sa.String(length=8), nullable=False, server_default='neu'),
        sa.Column('legal_basis', sa.String(length=32), nullable=False, server_default='legitimate_interest'),
        sa.Column('retention_category', sa.String(length=32), nullable=False, server_default='family_monitoring'),
        sa.Column('flagged_for_safeguarding', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('safeguarding_notes', sa.Text(), nullable=True),
        sa.Column('contains_health_data', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('archive_after', sa.DateTime(), nullable=False),
        sa.Column('delete_after', sa.DateTime(), nullable=True),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('anonymized_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "sentiment IN ('pos', 'neu', 'neg')", name='ck_conversations_sentiment'
        ),
        sa.CheckConstraint(
            "legal_basis IN ('consent', 'legal_obligation', 'vital_interest', 'legitimate_interest')",
            name='ck_conversations_legal_basis',
        ),
        sa.CheckConstraint(
            "retention_category IN ('essential_safeguarding', 'family_monitoring', 'service_improvement')",
            name='ck_conversations_retention_category',
        ),
        sa.CheckConstraint(
            'delete_after IS NULL OR delete_after >= archive_after',
            name='ck_conversations_delete_after_archive',
        ),
    )
    op.create_index('ix_conversations_subject_id', 'conversations', ['subject_id'], unique=False)
    op.create_index('ix_conversations_archive_after', 'conversations', ['archive_after'], unique=False)
    op.create_index('ix_conversations_delete_after', 'conversations', ['delete_after'], unique=False)
    op.create_index(
        'ix_conversations_retention_category', 'conversations', ['retention_category', 'created_at'], unique=False
    )
    op.create_index(
        'ix_conversations_flagged', 'conversations', ['subject_id', 'flagged_for_safeguarding'], unique=False
    )

    # -------------------------------------------------------------------------
    # 3. Archived conversations
    # -------------------------------------------------------------------------
    print("  Creating archived_conversations table...")

    op.create_table(
        'archived_conversations',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('original_id', sa.UUID(), nullable=False),
        sa.Column('subject_id', sa.UUID(), nullable=False),
        sa.Column('transcript', sa.Text(), nullable=False),
        sa.Column('sentiment', sa.String(length=8), nullable=False, server_default='neu'),
        sa.Column('legal_basis', sa.String(length=32), nullable=False),
        sa.Column('retention_category', sa.String(length=32), nullable=False),
        sa.Column('flagged_for_safeguarding', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('safeguarding_notes', sa.Text(), nullable=True),
        sa.Column('contains_health_data', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('original_created_at', sa.DateTime(), nullable=False),
        sa.Column('archived_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('delete_after', sa.DateTime(), nullable=True),
        sa.Column('last_notified_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('original_id', name='uq_archived_conversations_original_id'),
    )
    op.create_index(
        'ix_archived_conversations_subject', 'archived_conversations', ['subject_id', 'archived_at'], unique=False
    )
    op.create_index(
        'ix_archived_conversations_delete_after', 'archived_conversations', ['delete_after'], unique=False
    )

    # -------------------------------------------------------------------------
    # 4. Erasure requests
    # -------------------------------------------------------------------------
    print("  Creating erasure_requests table...")

    op.create_table(
        'erasure_requests',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('subject_id', sa.UUID(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('requested_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_count', sa.Integer(), nullable=True),
        sa.Column('retained_count', sa.Integer(), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_erasure_requests_subject_status', 'erasure_requests', ['subject_id', 'status'], unique=False
    )

    # -------------------------------------------------------------------------
    # 5. Audit trail, run summaries, leases
    # -------------------------------------------------------------------------
    print("  Creating lifecycle_events, lifecycle_runs and job_leases tables...")

    op.create_table(
        'lifecycle_events',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('conversation_id', sa.UUID(), nullable=True),
        sa.Column('subject_id', sa.UUID(), nullable=True),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('event_timestamp', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('initiated_by', sa.String(length=32), nullable=False),
        sa.Column('event_metadata', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lifecycle_events_conversation_id', 'lifecycle_events', ['conversation_id'], unique=False)
    op.create_index('ix_lifecycle_events_timestamp', 'lifecycle_events', ['event_timestamp'], unique=False)

    op.create_table(
        'lifecycle_runs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('run_id', sa.String(length=36), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('finished_at', sa.DateTime(), nullable=False),
        sa.Column('duration_ms', sa.Integer(), nullable=False),
        sa.Column('archived', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('anonymized', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('deleted', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notified', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notifications_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('errors', sa.JSON(), nullable=False),
        sa.Column('trigger', sa.String(length=20), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lifecycle_runs_run_id', 'lifecycle_runs', ['run_id'], unique=True)
    op.create_index('ix_lifecycle_runs_finished_at', 'lifecycle_runs', ['finished_at'], unique=False)

    op.create_table(
        'job_leases',
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('owner', sa.String(length=64), nullable=False),
        sa.Column('acquired_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('name'),
    )

    print("  Created 8 tables")


def downgrade() -> None:
    """Drop retention tables."""
    op.drop_table('job_leases')

    op.drop_index('ix_lifecycle_runs_finished_at', table_name='lifecycle_runs')
    op.drop_index('ix_lifecycle_runs_run_id', table_name='lifecycle_runs')
    op.drop_table('lifecycle_runs')

    op.drop_index('ix_lifecycle_events_timestamp', table_name='lifecycle_events')
    op.drop_index('ix_lifecycle_events_conversation_id', table_name='lifecycle_events')
    op.drop_table('lifecycle_events')

    op.drop_index('ix_erasure_requests_subject_status', table_name='erasure_requests')
    op.drop_table('erasure_requests')

    op.drop_index('ix_archived_conversations_delete_after', table_name='archived_conversations')
    op.drop_index('ix_archived_conversations_subject', table_name='archived_conversations')
    op.drop_table('archived_conversations')

    op.drop_index('ix_conversations_flagged', table_name='conversations')
    op.drop_index('ix_conversations_retention_category', table_name='conversations')
    op.drop_index('ix_conversations_delete_after', table_name='conversations')
    op.drop_index('ix_conversations_archive_after', table_name='conversations')
    op.drop_index('ix_conversations_subject_id', table_name='conversations')
    op.drop_table('conversations')

    op.drop_index('ix_subject_contacts_subject_id', table_name='subject_contacts')
    op.drop_table('subject_contacts')
    op.drop_table('people')
