"""initial_schema

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates the board hierarchy and its supporting tables:
1. Users
2. Boards and BoardMembers (owner kept on the board, never as a member row)
3. Lists and Cards with per-parent unique positions
4. CardAssignees and Comments
5. ActivityEntries and Notifications

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c2a9b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table('Users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('avatar_url', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_Users_username'), 'Users', ['username'], unique=True)
    op.create_index(op.f('ix_Users_email'), 'Users', ['email'], unique=True)

    op.create_table('Boards',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('background', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['Users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_Boards_owner_id'), 'Boards', ['owner_id'], unique=False)
    op.create_index(op.f('ix_Boards_updated_at'), 'Boards', ['updated_at'], unique=False)

    op.create_table('BoardMembers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('board_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['board_id'], ['Boards.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['Users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('board_id', 'user_id', name='uq_board_members_board_user')
    )
    op.create_index(op.f('ix_BoardMembers_board_id'), 'BoardMembers', ['board_id'], unique=False)
    op.create_index(op.f('ix_BoardMembers_user_id'), 'BoardMembers', ['user_id'], unique=False)

    op.create_table('Lists',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('board_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=120), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('archived', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['board_id'], ['Boards.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('board_id', 'position', name='uq_lists_board_position')
    )
    op.create_index(op.f('ix_Lists_board_id'), 'Lists', ['board_id'], unique=False)

    op.create_table('Cards',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('list_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('labels', sa.JSON(), nullable=False),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('checklist', sa.JSON(), nullable=False),
        sa.Column('archived', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['list_id'], ['Lists.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('list_id', 'position', name='uq_cards_list_position')
    )
    op.create_index(op.f('ix_Cards_list_id'), 'Cards', ['list_id'], unique=False)

    op.create_table('CardAssignees',
        sa.Column('card_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['card_id'], ['Cards.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['Users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('card_id', 'user_id')
    )

    op.create_table('Comments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('card_id', sa.Uuid(), nullable=False),
        sa.Column('author_id', sa.Uuid(), nullable=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['card_id'], ['Cards.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['author_id'], ['Users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_Comments_card_id'), 'Comments', ['card_id'], unique=False)

    op.create_table('ActivityEntries',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('board_id', sa.Uuid(), nullable=False),
        sa.Column('card_id', sa.Uuid(), nullable=True),
        sa.Column('scope', sa.String(length=10), nullable=False),
        sa.Column('actor_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=20), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('entity_title', sa.String(length=255), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['board_id'], ['Boards.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['card_id'], ['Cards.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['actor_id'], ['Users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    # Board feed and card history, newest first
    op.create_index('ix_activity_board_scope_created', 'ActivityEntries', ['board_id', 'scope', 'created_at'])
    op.create_index('ix_activity_card_created', 'ActivityEntries', ['card_id', 'created_at'])

    op.create_table('Notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('recipient_id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.String(length=500), nullable=False),
        sa.Column('board_id', sa.Uuid(), nullable=True),
        sa.Column('card_id', sa.Uuid(), nullable=True),
        sa.Column('actor_id', sa.Uuid(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['recipient_id'], ['Users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['board_id'], ['Boards.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['card_id'], ['Cards.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['actor_id'], ['Users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_Notifications_recipient_id'), 'Notifications', ['recipient_id'], unique=False)
    op.create_index(
        'ix_notifications_recipient_read_created',
        'Notifications',
        ['recipient_id', 'read', 'created_at'],
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('Notifications')
    op.drop_table('ActivityEntries')
    op.drop_table('Comments')
    op.drop_table('CardAssignees')
    op.drop_table('Cards')
    op.drop_table('Lists')
    op.drop_table('BoardMembers')
    op.drop_table('Boards')
    op.drop_table('Users')
