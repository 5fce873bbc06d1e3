"""add game_mode to lobbies; messaging and friends tables

Revision ID: b74e0d29c6a1
Revises: 3c9a1e7b5d20
Create Date: 2025-10-20 15:05:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b74e0d29c6a1'
down_revision = '3c9a1e7b5d20'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    # Add game_mode to lobbies
    lobby_cols = {c['name'] for c in insp.get_columns('lobbies')}
    if 'game_mode' not in lobby_cols:
        op.add_column('lobbies', sa.Column('game_mode', sa.String(length=20), nullable=True))
        op.execute("UPDATE lobbies SET game_mode = 'multi-device' WHERE game_mode IS NULL")
        with op.batch_alter_table('lobbies') as batch_op:
            batch_op.alter_column('game_mode', existing_type=sa.String(length=20), nullable=False,
                                  server_default='multi-device')

    if 'user_messages' not in existing_tables:
        op.create_table(
            'user_messages',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('sender_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column('recipient_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column('content', sa.Text(), nullable=False),
            sa.Column('lobby_id', sa.String(length=36), sa.ForeignKey('lobbies.id', ondelete='SET NULL'), nullable=True),
            sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )
        op.create_index('ix_user_messages_sender_id', 'user_messages', ['sender_id'])
        op.create_index('ix_user_messages_recipient_id', 'user_messages', ['recipient_id'])

    if 'message_read_status' not in existing_tables:
        op.create_table(
            'message_read_status',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('message_id', sa.String(length=36), sa.ForeignKey('user_messages.id', ondelete='CASCADE'), nullable=False),
            sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column('read_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint('message_id', 'user_id', name='uq_message_read_status_message_user'),
        )
        op.create_index('ix_message_read_status_message_id', 'message_read_status', ['message_id'])
        op.create_index('ix_message_read_status_user_id', 'message_read_status', ['user_id'])

    if 'friends' not in existing_tables:
        op.create_table(
            'friends',
            sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('friend_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('added_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )
        op.create_index('ix_friends_friend_id', 'friends', ['friend_id'])


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    for table in ('friends', 'message_read_status', 'user_messages'):
        if table in existing_tables:
            op.drop_table(table)

    lobby_cols = {c['name'] for c in insp.get_columns('lobbies')}
    if 'game_mode' in lobby_cols:
        with op.batch_alter_table('lobbies') as batch_op:
            batch_op.drop_column('game_mode')
