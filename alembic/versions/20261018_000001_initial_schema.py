"""Initial voice pipeline schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates submissions, audio masters, generated audio and the audit log.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all pipeline tables."""

    # =========================================================================
    # Submissions
    # =========================================================================
    op.create_table(
        'submissions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('doctor_name', sa.String(255), nullable=False),
        sa.Column('doctor_email', sa.String(255), nullable=True),
        sa.Column('audio_path', sa.Text(), nullable=True),
        sa.Column('selected_languages', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('elevenlabs_voice_id', sa.String(100), nullable=True),
        sa.Column('voice_clone_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('voice_clone_error', sa.Text(), nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='draft'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_submissions_status', 'submissions', ['status'])
    op.create_index('ix_submissions_voice_clone_status', 'submissions', ['voice_clone_status'])

    # =========================================================================
    # Audio Masters
    # =========================================================================
    op.create_table(
        'audio_masters',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('language_code', sa.String(10), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('file_path', sa.Text(), nullable=False),
        sa.Column('gcs_path', sa.Text(), nullable=True),
        sa.Column('duration_seconds', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_audio_masters_language', 'audio_masters', ['language_code', 'is_active'])

    # =========================================================================
    # Generated Audio
    # =========================================================================
    op.create_table(
        'generated_audio',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('submission_id', sa.Integer(), sa.ForeignKey('submissions.id'), nullable=False),
        sa.Column('language_code', sa.String(10), nullable=False),
        sa.Column('audio_master_id', sa.Integer(), sa.ForeignKey('audio_masters.id'), nullable=True),
        sa.Column('file_path', sa.Text(), nullable=True),
        sa.Column('gcs_path', sa.Text(), nullable=True),
        sa.Column('public_url', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='failed'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_generated_audio_submission', 'generated_audio', ['submission_id', 'language_code'])

    # =========================================================================
    # Audit Log
    # =========================================================================
    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('actor', sa.String(255), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_audit_log_entity', 'audit_log', ['entity_type', 'entity_id'])


def downgrade() -> None:
    """Drop all pipeline tables."""
    op.drop_table('audit_log')
    op.drop_table('generated_audio')
    op.drop_table('audio_masters')
    op.drop_table('submissions')
