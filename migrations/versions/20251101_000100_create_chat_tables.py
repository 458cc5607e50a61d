"""create directory and chat tables

Revision ID: 20251101_000100_create_chat_tables
Revises:
Create Date: 2025-11-01 00:01:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20251101_000100_create_chat_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'branches',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_headquarters', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )

    op.create_table(
        'missional_communities',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('branch_id', sa.BigInteger(), sa.ForeignKey('branches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_missional_communities_branch_id', 'missional_communities', ['branch_id'])

    op.create_table(
        'users',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='member'),
        sa.Column('branch_id', sa.BigInteger(), sa.ForeignKey('branches.id', ondelete='SET NULL')),
        sa.Column('mc_id', sa.BigInteger(), sa.ForeignKey('missional_communities.id', ondelete='SET NULL')),
        sa.Column('avatar', sa.String(length=500)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint("role IN ('super_admin', 'branch_admin', 'mc_leader', 'member')", name='valid_user_role'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_branch_id', 'users', ['branch_id'])
    op.create_index('ix_users_mc_id', 'users', ['mc_id'])

    op.create_table(
        'conversations',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('type', sa.String(length=50), nullable=False, server_default='individual'),
        sa.Column('avatar', sa.String(length=500)),
        sa.Column('is_muted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_pinned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('branch_id', sa.BigInteger(), sa.ForeignKey('branches.id', ondelete='CASCADE')),
        sa.Column('mc_id', sa.BigInteger(), sa.ForeignKey('missional_communities.id', ondelete='CASCADE')),
        sa.Column('category_key', sa.String(length=100), unique=True),
        sa.Column('settings', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint(
            "type IN ('individual', 'group', 'mc', 'branch', 'announcement')", name='valid_conversation_type'
        ),
    )
    op.create_index('ix_conversations_updated_at', 'conversations', ['updated_at'])
    op.create_index('ix_conversations_branch_type', 'conversations', ['branch_id', 'type'])
    op.create_index('ix_conversations_mc_type', 'conversations', ['mc_id', 'type'])

    op.create_table(
        'conversation_participants',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('conversation_id', sa.BigInteger(), sa.ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('left_at', sa.DateTime(timezone=True)),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_add_members', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_read_at', sa.DateTime(timezone=True)),
        sa.Column('unread_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('conversation_id', 'user_id', name='uq_conversation_participant'),
        sa.CheckConstraint('unread_count >= 0', name='non_negative_unread_count'),
    )
    op.create_index('ix_conversation_participants_conversation_id', 'conversation_participants', ['conversation_id'])
    op.create_index('ix_conversation_participants_user_id', 'conversation_participants', ['user_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('client_id', sa.String(length=255), unique=True),
        sa.Column('conversation_id', sa.BigInteger(), sa.ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_name', sa.String(length=255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False, server_default='text'),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='sent'),
        sa.Column('file_url', sa.String(length=1000)),
        sa.Column('file_name', sa.String(length=255)),
        sa.Column('file_size', sa.BigInteger()),
        sa.Column('reply_to_id', sa.BigInteger()),
        sa.Column('metadata', sa.JSON()),
        sa.Column('is_encrypted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint(
            "type IN ('text', 'image', 'file', 'audio', 'video', 'location', 'system')", name='valid_message_type'
        ),
        sa.CheckConstraint(
            "status IN ('sending', 'sent', 'delivered', 'read', 'failed')", name='valid_message_status'
        ),
    )
    op.create_index('ix_messages_conversation_id', 'messages', ['conversation_id'])
    op.create_index('ix_messages_sender_id', 'messages', ['sender_id'])
    op.create_index('ix_messages_conversation_created', 'messages', ['conversation_id', 'created_at'])
    op.create_index('ix_messages_reply_to_id', 'messages', ['reply_to_id'])


def downgrade():
    op.drop_table('messages')
    op.drop_table('conversation_participants')
    op.drop_table('conversations')
    op.drop_table('users')
    op.drop_table('missional_communities')
    op.drop_table('branches')
