"""initial trivia schema

Revision ID: 4c2a9e7d1b30
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e7d1b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('a', sa.Text(), nullable=False),
        sa.Column('b', sa.Text(), nullable=False),
        sa.Column('c', sa.Text(), nullable=False),
        sa.Column('d', sa.Text(), nullable=False),
        sa.Column('correct_label', sa.String(length=1), nullable=False, server_default='A'),
    )
    op.create_index('ix_question_category', 'question', ['category'])

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('host_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('location', sa.String(length=200), nullable=True),
        sa.Column('scheduled_date', sa.Date(), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=True),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='setup'),
        sa.Column('total_rounds', sa.Integer(), nullable=False),
        sa.Column('questions_per_round', sa.Integer(), nullable=False),
        sa.Column('selected_categories', sa.Text(), nullable=False),
        sa.Column('max_teams', sa.Integer(), nullable=False, server_default='20'),
        sa.Column('max_players_per_team', sa.Integer(), nullable=False, server_default='4'),
        sa.Column('min_players_per_team', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('self_registration_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('archived', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('max_teams >= 1', name='ck_game_max_teams'),
        sa.CheckConstraint(
            'min_players_per_team >= 1 AND min_players_per_team <= max_players_per_team',
            name='ck_game_team_size',
        ),
        sa.CheckConstraint('total_rounds > 0 AND questions_per_round > 0', name='ck_game_round_config'),
    )
    op.create_index('ix_game_host_id', 'game', ['host_id'])
    op.create_index('ix_game_status', 'game', ['status'])

    op.create_table(
        'team',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('display_color', sa.String(length=7), nullable=False, server_default='#3B82F6'),
        sa.Column('current_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('game_id', 'name', name='uq_team_game_name'),
        sa.CheckConstraint('current_score >= 0', name='ck_team_score_positive'),
    )
    op.create_index('ix_team_game_id', 'team', ['game_id'])

    op.create_table(
        'team_player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id'), nullable=False),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('team_id', 'player_id', name='uq_team_player_membership'),
        sa.UniqueConstraint('game_id', 'player_id', name='uq_team_player_one_team_per_game'),
    )
    op.create_index('ix_team_player_team_id', 'team_player', ['team_id'])
    op.create_index('ix_team_player_player_id', 'team_player', ['player_id'])

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('start_time', sa.DateTime(), nullable=True),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('custom_categories', sa.Text(), nullable=True),
        sa.Column('questions_per_round', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('game_id', 'round_number', name='uq_round_game_number'),
        sa.CheckConstraint('round_number > 0', name='ck_round_number_positive'),
    )
    op.create_index('ix_round_game_id', 'round', ['game_id'])

    op.create_table(
        'round_question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('round.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('question_order', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('round_id', 'question_order', name='uq_round_question_order'),
        sa.UniqueConstraint('round_id', 'question_id', name='uq_round_question_question'),
        sa.CheckConstraint('question_order > 0', name='ck_round_question_order_positive'),
    )
    op.create_index('ix_round_question_round_id', 'round_question', ['round_id'])
    op.create_index('ix_round_question_question_id', 'round_question', ['question_id'])

    op.create_table(
        'team_answer',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id'), nullable=False),
        sa.Column('round_question_id', sa.Integer(), sa.ForeignKey('round_question.id'), nullable=False),
        sa.Column('submitted_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('answer', sa.String(length=1), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('team_id', 'round_question_id', name='uq_team_answer_once'),
        sa.CheckConstraint('points_earned >= 0', name='ck_team_answer_points_positive'),
    )
    op.create_index('ix_team_answer_team_id', 'team_answer', ['team_id'])
    op.create_index('ix_team_answer_round_question_id', 'team_answer', ['round_question_id'])

    op.create_table(
        'host_used_question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('host_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('used_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('host_id', 'question_id', name='uq_host_used_question_pair'),
    )
    op.create_index('ix_host_used_question_host_id', 'host_used_question', ['host_id'])
    op.create_index('ix_host_used_question_question_id', 'host_used_question', ['question_id'])


def downgrade():
    op.drop_table('host_used_question')
    op.drop_table('team_answer')
    op.drop_table('round_question')
    op.drop_table('round')
    op.drop_table('team_player')
    op.drop_table('team')
    op.drop_table('game')
    op.drop_table('question')
    op.drop_table('user')
