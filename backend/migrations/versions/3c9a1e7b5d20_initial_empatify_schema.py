"""initial empatify schema: users, lobbies, participants, songs, ratings

Revision ID: 3c9a1e7b5d20
Revises:
Create Date: 2025-10-02 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9a1e7b5d20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('password_hash', sa.String(length=256), nullable=True),
        sa.Column('pro_plan', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('spotify_access_token', sa.Text(), nullable=True),
        sa.Column('spotify_refresh_token', sa.Text(), nullable=True),
        sa.Column('spotify_token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('spotify_user_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('name'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'lobbies',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('host_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('max_rounds', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_lobbies_host_id', 'lobbies', ['host_id'])

    op.create_table(
        'lobby_participants',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('lobby_id', sa.String(length=36), sa.ForeignKey('lobbies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('lobby_id', 'user_id', name='uq_lobby_participants_lobby_user'),
    )
    op.create_index('ix_lobby_participants_lobby_id', 'lobby_participants', ['lobby_id'])
    op.create_index('ix_lobby_participants_user_id', 'lobby_participants', ['user_id'])

    op.create_table(
        'songs',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('spotify_track_id', sa.String(length=255), nullable=False),
        sa.Column('suggested_by', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('lobby_id', sa.String(length=36), sa.ForeignKey('lobbies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('lobby_id', 'suggested_by', 'round_number', name='uq_songs_lobby_user_round'),
    )
    op.create_index('ix_songs_lobby_id', 'songs', ['lobby_id'])
    op.create_index('ix_songs_suggested_by', 'songs', ['suggested_by'])

    op.create_table(
        'ratings',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('song_id', sa.String(length=36), sa.ForeignKey('songs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('given_by', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rating_value', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('song_id', 'given_by', name='uq_ratings_song_user'),
        sa.CheckConstraint('rating_value >= 1 AND rating_value <= 10', name='rating_value_check'),
    )
    op.create_index('ix_ratings_song_id', 'ratings', ['song_id'])
    op.create_index('ix_ratings_given_by', 'ratings', ['given_by'])


def downgrade():
    op.drop_table('ratings')
    op.drop_table('songs')
    op.drop_table('lobby_participants')
    op.drop_table('lobbies')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
