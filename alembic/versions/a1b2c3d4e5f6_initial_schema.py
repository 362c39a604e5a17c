"""initial schema: users, quizzes, questions, quiz_attempts

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(255), nullable=False),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'quizzes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('creator_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('creator_name', sa.String(255), nullable=False),
        sa.Column('access_code', sa.String(32), nullable=False),
        sa.Column('url_slug', sa.String(128), nullable=False),
        sa.Column('dashboard_token', sa.String(128), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_quizzes_creator_id', 'quizzes', ['creator_id'])
    op.create_index('ix_quizzes_access_code', 'quizzes', ['access_code'], unique=True)
    op.create_index('ix_quizzes_url_slug', 'quizzes', ['url_slug'], unique=True)
    op.create_index('ix_quizzes_dashboard_token', 'quizzes', ['dashboard_token'], unique=True)
    op.create_index('ix_quizzes_created_at', 'quizzes', ['created_at'])

    # Cascades back up the sweeper's explicit child deletes
    op.create_table(
        'questions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('type', sa.String(32), server_default='multiple_choice', nullable=False),
        sa.Column('options', sa.Text(), nullable=False),
        sa.Column('correct_answers', sa.Text(), nullable=False),
        sa.Column('hint', sa.Text(), nullable=True),
        sa.Column('order', sa.Integer(), server_default='0', nullable=False),
        sa.Column('image_url', sa.String(1024), nullable=True),
    )
    op.create_index('ix_questions_quiz_id', 'questions', ['quiz_id'])

    op.create_table(
        'quiz_attempts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('taker_name', sa.String(255), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('max_score', sa.Integer(), nullable=False),
        sa.Column('answers', sa.Text(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_quiz_attempts_quiz_id', 'quiz_attempts', ['quiz_id'])
    op.create_index('ix_quiz_attempts_completed_at', 'quiz_attempts', ['completed_at'])

def downgrade() -> None:
    op.drop_table('quiz_attempts')
    op.drop_table('questions')
    op.drop_table('quizzes')
    op.drop_table('users')
