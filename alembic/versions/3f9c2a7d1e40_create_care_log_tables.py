"""Create residents, source_docs and care_events tables

Revision ID: 3f9c2a7d1e40
Revises:
Create Date: 2025-09-25 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f9c2a7d1e40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('residents',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('source_docs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('storage_path', sa.String(), nullable=False),
        sa.Column('ocr_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Raw OCR response or extraction audit trail'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('care_events',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('source_doc_id', sa.UUID(), nullable=False),
        sa.Column('resident_name', sa.String(), nullable=False),
        sa.Column('event_date', sa.Date(), nullable=False),
        sa.Column('hour', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(), nullable=False, comment='urination | defecation | fluid'),
        sa.Column('count', sa.Integer(), nullable=False),
        sa.Column('guided', sa.Boolean(), nullable=False),
        sa.Column('incontinence', sa.Boolean(), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('confidence', sa.Float(), nullable=True),
        sa.Column('needs_review', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint('hour >= 0 AND hour <= 23', name='ck_care_events_hour'),
        sa.CheckConstraint('count >= 1', name='ck_care_events_count'),
        sa.ForeignKeyConstraint(['source_doc_id'], ['source_docs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('source_doc_id', 'resident_name', 'event_date', 'hour', 'category', name='uq_care_events_natural_key')
    )
    op.create_index('ix_care_events_source_doc_id', 'care_events', ['source_doc_id'], unique=False)
    op.create_index('ix_care_events_event_date', 'care_events', ['event_date'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_care_events_event_date', table_name='care_events')
    op.drop_index('ix_care_events_source_doc_id', table_name='care_events')
    op.drop_table('care_events')
    op.drop_table('source_docs')
    op.drop_table('residents')
