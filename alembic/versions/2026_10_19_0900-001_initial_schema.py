"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create cinemas table
    op.create_table(
        'cinemas',
        sa.Column('id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('short_name', sa.String(length=50), nullable=True),
        sa.Column('chain', sa.String(length=100), nullable=True),
        sa.Column('website', sa.String(length=500), nullable=True),
        sa.Column('address', JSONB(), nullable=True),
        sa.Column('features', ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('last_scraped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_cinemas_chain'), 'cinemas', ['chain'], unique=False)

    # Create films table
    op.create_table(
        'films',
        sa.Column('id', sa.String(length=100), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('tmdb_id', sa.Integer(), nullable=True),
        sa.Column('directors', ARRAY(sa.String()), nullable=True),
        sa.Column('countries', ARRAY(sa.String()), nullable=True),
        sa.Column('cast', ARRAY(sa.String()), nullable=True),
        sa.Column('overview', sa.Text(), nullable=True),
        sa.Column('poster_path', sa.String(length=200), nullable=True),
        sa.Column('runtime', sa.Integer(), nullable=True),
        sa.Column('is_non_film', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_films_title'), 'films', ['title'], unique=False)
    op.create_index(op.f('ix_films_tmdb_id'), 'films', ['tmdb_id'], unique=True)

    # Create film_aliases table
    op.create_table(
        'film_aliases',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('normalized_title', sa.String(length=500), nullable=False),
        sa.Column('film_id', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['film_id'], ['films.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('normalized_title', name='uq_normalized_title')
    )
    op.create_index(op.f('ix_film_aliases_normalized_title'), 'film_aliases', ['normalized_title'], unique=False)
    op.create_index(op.f('ix_film_aliases_film_id'), 'film_aliases', ['film_id'], unique=False)

    # Create screenings table
    op.create_table(
        'screenings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('cinema_id', sa.String(length=100), nullable=False),
        sa.Column('film_id', sa.String(length=100), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('screen', sa.String(length=100), nullable=True),
        sa.Column('format', sa.String(length=100), nullable=True),
        sa.Column('booking_url', sa.String(length=1000), nullable=False),
        sa.Column('event_type', sa.String(length=50), nullable=True),
        sa.Column('event_description', sa.Text(), nullable=True),
        sa.Column('source_id', sa.String(length=500), nullable=True),
        sa.Column('raw_title', sa.Text(), nullable=True),
        sa.Column('scraped_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['cinema_id'], ['cinemas.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['film_id'], ['films.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cinema_id', 'film_id', 'start_time', 'screen', name='uq_cinema_film_time_screen')
    )
    op.create_index(op.f('ix_screenings_cinema_id'), 'screenings', ['cinema_id'], unique=False)
    op.create_index(op.f('ix_screenings_film_id'), 'screenings', ['film_id'], unique=False)
    op.create_index(op.f('ix_screenings_start_time'), 'screenings', ['start_time'], unique=False)
    op.create_index(op.f('ix_screenings_source_id'), 'screenings', ['source_id'], unique=False)

    # Create bfi_import_runs table
    op.create_table(
        'bfi_import_runs',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('run_type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('triggered_by', sa.String(length=200), nullable=True),
        sa.Column('source_status', JSONB(), nullable=False),
        sa.Column('pdf_screenings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('changes_screenings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_screenings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('added', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_codes', ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('errors', ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_ms', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bfi_import_runs_created_at'), 'bfi_import_runs', ['created_at'], unique=False)
    op.create_index('ix_bfi_import_runs_status_created_at', 'bfi_import_runs', ['status', 'created_at'], unique=False)
    op.create_index('ix_bfi_import_runs_run_type_created_at', 'bfi_import_runs', ['run_type', 'created_at'], unique=False)

    # Create health_snapshots table
    op.create_table(
        'health_snapshots',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('cinema_id', sa.String(length=100), nullable=False),
        sa.Column('snapshot_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_future_screenings', sa.Integer(), nullable=False),
        sa.Column('next_14d_screenings', sa.Integer(), nullable=False),
        sa.Column('next_7d_screenings', sa.Integer(), nullable=False),
        sa.Column('last_scrape_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('hours_since_last_scrape', sa.Float(), nullable=True),
        sa.Column('overall_health_score', sa.Float(), nullable=False),
        sa.Column('freshness_score', sa.Float(), nullable=False),
        sa.Column('volume_score', sa.Float(), nullable=False),
        sa.Column('is_anomaly', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('anomaly_reasons', JSONB(), nullable=False, server_default='[]'),
        sa.Column('chain_median', sa.Float(), nullable=True),
        sa.Column('percent_of_chain_median', sa.Float(), nullable=True),
        sa.Column('triggered_alert', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('alert_type', sa.String(length=50), nullable=True),
        sa.ForeignKeyConstraint(['cinema_id'], ['cinemas.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_health_snapshots_cinema_snapshot_at', 'health_snapshots', ['cinema_id', 'snapshot_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_health_snapshots_cinema_snapshot_at', table_name='health_snapshots')
    op.drop_table('health_snapshots')

    op.drop_index('ix_bfi_import_runs_run_type_created_at', table_name='bfi_import_runs')
    op.drop_index('ix_bfi_import_runs_status_created_at', table_name='bfi_import_runs')
    op.drop_index(op.f('ix_bfi_import_runs_created_at'), table_name='bfi_import_runs')
    op.drop_table('bfi_import_runs')

    op.drop_index(op.f('ix_screenings_source_id'), table_name='screenings')
    op.drop_index(op.f('ix_screenings_start_time'), table_name='screenings')
    op.drop_index(op.f('ix_screenings_film_id'), table_name='screenings')
    op.drop_index(op.f('ix_screenings_cinema_id'), table_name='screenings')
    op.drop_table('screenings')

    op.drop_index(op.f('ix_film_aliases_film_id'), table_name='film_aliases')
    op.drop_index(op.f('ix_film_aliases_normalized_title'), table_name='film_aliases')
    op.drop_table('film_aliases')

    op.drop_index(op.f('ix_films_tmdb_id'), table_name='films')
    op.drop_index(op.f('ix_films_title'), table_name='films')
    op.drop_table('films')

    op.drop_index(op.f('ix_cinemas_chain'), table_name='cinemas')
    op.drop_table('cinemas')
