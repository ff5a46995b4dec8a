"""create popularity lookup tables

Revision ID: 4b7c1e2d9a10
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7c1e2d9a10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing = set(sa.inspect(bind).get_table_names())

    if 'artist_degree' not in existing:
        op.create_table(
            'artist_degree',
            sa.Column('mbid', sa.String(length=36), nullable=False),
            sa.Column('degree', sa.Integer(), nullable=False),
            sa.PrimaryKeyConstraint('mbid'),
        )

    if 'artist_pair_stat' not in existing:
        op.create_table(
            'artist_pair_stat',
            sa.Column('mbid_a', sa.String(length=36), nullable=False),
            sa.Column('mbid_b', sa.String(length=36), nullable=False),
            sa.Column('family_count', sa.Integer(), nullable=False),
            sa.CheckConstraint('mbid_a < mbid_b', name='ck_artist_pair_ordered'),
            sa.PrimaryKeyConstraint('mbid_a', 'mbid_b'),
        )

    if 'artist_popularity_tier' not in existing:
        op.create_table(
            'artist_popularity_tier',
            sa.Column('mbid', sa.String(length=36), nullable=False),
            sa.Column('tier', sa.String(length=32), nullable=False),
            sa.Column('tier_version', sa.String(length=16), nullable=False),
            sa.Column('computed_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('mbid'),
        )
        with op.batch_alter_table('artist_popularity_tier') as batch_op:
            batch_op.create_index('ix_artist_popularity_tier_tier_version', ['tier_version'], unique=False)


def downgrade():
    with op.batch_alter_table('artist_popularity_tier') as batch_op:
        batch_op.drop_index('ix_artist_popularity_tier_tier_version')
    op.drop_table('artist_popularity_tier')
    op.drop_table('artist_pair_stat')
    op.drop_table('artist_degree')
