"""PDF generation jobs table

Revision ID: 001_pdf_generation_jobs
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_pdf_generation_jobs'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ═══════════════════════════════════════════════════════════════════════════
    # PDF Generation Jobs Table
    # ═══════════════════════════════════════════════════════════════════════════
    op.create_table(
        'pdf_generation_jobs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, index=True),
        sa.Column('html_content', sa.Text, nullable=False),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('storage_path', sa.String(700), nullable=True),
        sa.Column('error_message', sa.String(2000), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('claimed_at', sa.DateTime, nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name='ck_pdf_generation_jobs_status',
        ),
    )

    # Oldest-pending selection + SKIP LOCKED claim
    op.create_index(
        'ix_pdf_generation_jobs_status_created',
        'pdf_generation_jobs',
        ['status', 'created_at', 'id'],
    )


def downgrade() -> None:
    op.drop_index('ix_pdf_generation_jobs_status_created', 'pdf_generation_jobs')
    op.drop_table('pdf_generation_jobs')
